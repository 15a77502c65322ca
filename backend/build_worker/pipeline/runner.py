"""
外部进程执行器 - 在指定目录执行一条命令直到结束

职责：
- 以离散参数向量启动进程（不经过shell，避免参数注入）
- 逐行转发输出到日志并捕获，失败时作为诊断文本保留
- 可选超时（到期强制结束进程）

测试要点：
- test_run_success: 退出码0
- test_run_nonzero_exit: 非零退出码保留输出
- test_run_missing_executable: 无法启动
- test_run_missing_cwd: 工作目录不存在
- test_run_timeout: 超时
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from pathlib import Path

from ..interfaces import IProcessRunner
from .results import ProcessOutcome

logger = logging.getLogger(__name__)


class ProcessRunner(IProcessRunner):
    """subprocess 封装"""

    def __init__(self, log_prefix: str = ""):
        self.log_prefix = log_prefix

    def run(
        self,
        argv: list[str],
        cwd: Path,
        *,
        timeout: float | None = None,
    ) -> ProcessOutcome:
        """执行命令，返回结构化结果（从不因进程失败抛出异常）"""
        command = tuple(str(a) for a in argv)
        if not cwd.is_dir():
            return ProcessOutcome(command, None, start_error=f"工作目录不存在: {cwd}")

        logger.info(f"{self.log_prefix}执行: {' '.join(command)} (cwd={cwd})")
        try:
            proc = subprocess.Popen(
                command,
                cwd=str(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except OSError as e:
            return ProcessOutcome(command, None, start_error=str(e))

        timed_out = threading.Event()
        timer: threading.Timer | None = None
        if timeout is not None:
            def _kill() -> None:
                timed_out.set()
                _kill_group(proc)

            timer = threading.Timer(timeout, _kill)
            timer.daemon = True
            timer.start()

        lines: list[str] = []
        try:
            for line in proc.stdout:
                lines.append(line)
                logger.debug(f"{self.log_prefix}{line.rstrip()}")
            returncode = proc.wait()
        finally:
            if timer is not None:
                timer.cancel()
            proc.stdout.close()

        return ProcessOutcome(
            command,
            returncode,
            output="".join(lines),
            timed_out=timed_out.is_set(),
        )


def _kill_group(proc: subprocess.Popen) -> None:
    """结束整个进程组（npm/gradlew 等包装脚本会派生子进程并持有输出管道）"""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
