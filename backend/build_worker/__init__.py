"""
构建 Worker - 后端核心模块

模块结构：
- config/     运行期配置加载
- models/     数据模型定义（Job/JobChange）
- queue/      任务队列客户端（Firestore/内存）
- pipeline/   构建流水线、任务处理与任务监听
"""

__version__ = "0.1.0"
