"""
任务队列模块 - 队列客户端与变更事件流

子模块：
- stream: 可关闭的变更事件通道
- memory: 进程内队列（测试/本地）
- firestore: Firestore builds 集合客户端
"""

from .memory import MemoryJobQueue
from .stream import ChangeStream

__all__ = [
    "ChangeStream",
    "MemoryJobQueue",
]
