"""
流水线结果类型 - 进程结果与阶段结果

阶段失败通过显式结果值逐层返回，不依赖异常展开：
- ProcessOutcome: 单次外部进程执行结果
- StageResult: 单个阶段结果（成功，或带错误类别与诊断文本的失败）
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """失败类别"""
    STAGE_FAILED = "stage_failed"
    ARTIFACT_NOT_FOUND = "artifact_not_found"
    ARCHIVE_ERROR = "archive_error"
    WORKSPACE_ERROR = "workspace_error"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass(frozen=True)
class ProcessOutcome:
    """外部进程执行结果"""
    argv: tuple[str, ...]
    returncode: int | None  # None: 进程未能启动
    output: str = ""
    timed_out: bool = False
    start_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def diagnostic(self) -> str:
        """人类可读的失败说明 + 进程输出"""
        command = " ".join(self.argv)
        if self.start_error is not None:
            header = f"命令无法启动: {command}: {self.start_error}"
        elif self.timed_out:
            header = f"命令超时: {command}"
        else:
            header = f"命令失败 (exit {self.returncode}): {command}"
        if self.output:
            return f"{header}\n{self.output.rstrip()}"
        return header


@dataclass(frozen=True)
class StageResult:
    """阶段结果"""
    stage: str
    ok: bool
    kind: ErrorKind | None = None
    diagnostic: str = ""

    @classmethod
    def passed(cls, stage: str) -> StageResult:
        return cls(stage=stage, ok=True)

    @classmethod
    def failed(cls, stage: str, kind: ErrorKind, diagnostic: str) -> StageResult:
        return cls(stage=stage, ok=False, kind=kind, diagnostic=diagnostic)

    @property
    def error_log(self) -> str:
        """写入队列 errorLog 的文本"""
        kind = self.kind.value if self.kind else "unknown"
        return f"[{self.stage}] {kind}: {self.diagnostic}"
