"""
流水线模块 - 构建流水线与任务编排

子模块：
- stages: 流水线各阶段定义
- runner: 外部进程执行器
- extractor: 归档条目提取器
- executor: 流水线执行器
- processor: 单任务生命周期处理
- watcher: 任务监听与分发
"""

from .executor import PipelineExecutor
from .extractor import ArchiveExtractor
from .processor import JobOutcome, JobProcessor
from .results import ErrorKind, ProcessOutcome, StageResult
from .runner import ProcessRunner
from .stages import BUILD_STAGES, BuildContext, PipelineStage, StageEnum
from .watcher import JobWatcher

__all__ = [
    "PipelineStage",
    "BUILD_STAGES",
    "BuildContext",
    "StageEnum",
    "ProcessRunner",
    "ProcessOutcome",
    "ArchiveExtractor",
    "ErrorKind",
    "StageResult",
    "PipelineExecutor",
    "JobProcessor",
    "JobOutcome",
    "JobWatcher",
]
