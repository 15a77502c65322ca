"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(runtime_config, memory_queue, make_job):
        job = memory_queue.submit(make_job())
"""

from __future__ import annotations

import uuid
import zipfile
from pathlib import Path
from typing import Callable

import pytest

from build_worker.config import RuntimeConfig, WorkspaceConfig
from build_worker.config.runtime_config import LoggingConfig
from build_worker.interfaces import IProcessRunner
from build_worker.models import Job
from build_worker.pipeline import PipelineExecutor, ProcessOutcome
from build_worker.queue import MemoryJobQueue


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def runtime_config(tmp_path: Path) -> RuntimeConfig:
    """运行期配置（工作目录指向临时目录）"""
    return RuntimeConfig(
        workspace=WorkspaceConfig(root=str(tmp_path / "builds")),
        logging=LoggingConfig(log_to_file=False),
    )


# ============================================================================
# 队列与任务 Fixtures
# ============================================================================

@pytest.fixture
def memory_queue() -> MemoryJobQueue:
    """内存队列"""
    queue = MemoryJobQueue()
    yield queue
    queue.close()


@pytest.fixture
def make_job() -> Callable[..., Job]:
    """任务工厂"""

    def _make(**overrides) -> Job:
        data = {
            "job_id": uuid.uuid4().hex,
            "project_id": "proj-1",
            "source_url": "https://good.repo",
            "version": "2.0.0",
        }
        data.update(overrides)
        return Job(**data)

    return _make


# ============================================================================
# 外部进程 Fakes
# ============================================================================

def write_apks(path: Path, entries: dict[str, bytes]) -> Path:
    """生成一个 .apks（zip）归档"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


class FakeRunner(IProcessRunner):
    """脚本化进程执行器（不启动真实进程）

    failures: 命令中任一参数等于 key 时返回对应 (退出码, 输出)
    apks_entries: bundletool 阶段成功时写入 --output 的归档内容
    """

    def __init__(
        self,
        failures: dict[str, tuple[int, str]] | None = None,
        apks_entries: dict[str, bytes] | None = None,
    ):
        self.failures = failures or {}
        self.apks_entries = apks_entries if apks_entries is not None else {"universal.apk": b"APK-BYTES"}
        self.calls: list[tuple[tuple[str, ...], Path]] = []

    def run(self, argv, cwd, *, timeout=None) -> ProcessOutcome:
        command = tuple(argv)
        self.calls.append((command, cwd))
        for key, (code, output) in self.failures.items():
            if key in command:
                return ProcessOutcome(command, code, output=output)
        if "build-apks" in command:
            output = next(a for a in command if a.startswith("--output="))
            write_apks(Path(output.split("=", 1)[1]), self.apks_entries)
        return ProcessOutcome(command, 0, output="ok\n")

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [c for c, _ in self.calls]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_executor(runtime_config: RuntimeConfig) -> Callable[..., PipelineExecutor]:
    """以 FakeRunner 构造流水线执行器"""

    def _make(runner: IProcessRunner | None = None, **kwargs) -> PipelineExecutor:
        return PipelineExecutor(runtime_config, runner=runner or FakeRunner(), **kwargs)

    return _make
