"""
模块接口契约 - 定义各模块的抽象接口

设计原则：
1. 模块间通过接口通信，不直接依赖具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from build_worker.interfaces import IProcessRunner

    class FakeRunner(IProcessRunner):
        def run(self, argv, cwd, *, timeout=None) -> ProcessOutcome:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from .models import Job, JobArtifacts, JobChange
    from .pipeline.results import ProcessOutcome


# ============================================================================
# 外部进程与归档接口
# ============================================================================

class IProcessRunner(ABC):
    """外部进程执行器接口"""

    @abstractmethod
    def run(
        self,
        argv: list[str],
        cwd: Path,
        *,
        timeout: float | None = None,
    ) -> ProcessOutcome:
        """
        在指定工作目录执行一条外部命令直到结束

        Args:
            argv: 命令及参数（离散参数向量，不经过shell）
            cwd: 工作目录（必须存在）
            timeout: 超时秒数，None 表示不限制

        Returns:
            进程结果（退出码 + 捕获的输出）
        """
        ...


class IArchiveExtractor(ABC):
    """归档条目提取器接口"""

    @abstractmethod
    def extract_entry(self, archive_path: Path, entry_name: str, dest_path: Path) -> bool:
        """
        从归档中提取单个条目到目标文件

        Args:
            archive_path: 归档文件路径（.apks 为 zip 格式）
            entry_name: 条目名称（精确匹配）
            dest_path: 目标文件路径

        Returns:
            True 表示已提取；False 表示条目不存在（不产生输出文件）

        Raises:
            ArchiveError: 归档损坏或无法读取
        """
        ...


# ============================================================================
# 任务队列接口
# ============================================================================

class IChangeStream(ABC):
    """变更事件流接口（可关闭）"""

    @abstractmethod
    def __iter__(self) -> Iterator[JobChange]:
        ...

    @abstractmethod
    def close(self) -> None:
        """关闭事件流，迭代随之结束"""
        ...


class IJobQueue(ABC):
    """任务队列接口"""

    @abstractmethod
    def get(self, job_id: str) -> Job | None:
        """获取任务"""
        ...

    @abstractmethod
    def claim(self, job_id: str) -> Job | None:
        """
        原子认领任务（queued → building）

        Returns:
            认领成功返回最新任务；任务不存在或状态已不是 queued 返回 None
        """
        ...

    @abstractmethod
    def complete(self, job_id: str, artifacts: JobArtifacts) -> None:
        """标记成功（building → success）并写入产物地址"""
        ...

    @abstractmethod
    def fail(self, job_id: str, error_log: str) -> None:
        """标记失败（building → failed）并写入错误日志"""
        ...

    @abstractmethod
    def watch_queued(self) -> IChangeStream:
        """订阅 status == queued 的任务视图"""
        ...

    @abstractmethod
    def close(self) -> None:
        """释放客户端资源"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class BuildWorkerError(Exception):
    """基础异常"""
    pass


class ConfigError(BuildWorkerError):
    """配置错误"""
    pass


class CredentialError(BuildWorkerError):
    """队列访问凭据缺失（启动期致命错误）"""
    pass


class QueueError(BuildWorkerError):
    """队列读写错误"""
    pass


class InvalidTransitionError(QueueError):
    """非法状态迁移"""
    pass


class ArchiveError(BuildWorkerError):
    """归档读取错误"""
    pass


class WorkspaceError(BuildWorkerError):
    """工作目录创建/清理错误"""
    pass
