"""
任务处理器 - 驱动单个任务从 queued 到终态

流程：
1. 认领（queued → building，条件更新；失败则跳过）
2. 准备工作目录
3. 执行流水线
4. 回写结果（success + 产物地址 / failed + 错误日志）
5. 无条件清理工作目录（即使回写失败）

所有任务级异常在此边界内捕获，不会传播到监听器或其他任务。
"""

from __future__ import annotations

import logging
import shutil
import traceback
from enum import Enum
from pathlib import Path

from ..config import RuntimeConfig, get_config
from ..interfaces import IJobQueue
from ..models import Job, JobArtifacts
from .executor import PipelineExecutor
from .results import ErrorKind, StageResult

logger = logging.getLogger(__name__)


class JobOutcome(str, Enum):
    """处理结果"""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class JobProcessor:
    """任务处理器"""

    def __init__(
        self,
        queue: IJobQueue,
        executor: PipelineExecutor | None = None,
        config: RuntimeConfig | None = None,
    ):
        self.queue = queue
        self.config = config or get_config()
        self.executor = executor or PipelineExecutor(self.config)

    def build_artifacts(self, job: Job) -> JobArtifacts:
        """由版本号生成确定的产物下载地址"""
        release = self.config.release
        return JobArtifacts(
            aab_url=release.artifact_url(job.version, release.aab_filename),
            apk_url=release.artifact_url(job.version, release.apk_filename),
        )

    def process(self, job_id: str) -> JobOutcome:
        """处理单个任务"""
        logger.info(f"[{job_id}] 认领任务...")
        try:
            job = self.queue.claim(job_id)
        except Exception:
            logger.exception(f"[{job_id}] 认领失败")
            return JobOutcome.SKIPPED
        if job is None:
            logger.info(f"[{job_id}] 任务不存在或已被认领，跳过")
            return JobOutcome.SKIPPED

        workspace = self.config.get_job_dir(job_id)
        try:
            result = self._build(job, workspace)
            return self._report(job, result)
        finally:
            self._cleanup(job_id, workspace)

    def _build(self, job: Job, workspace: Path) -> StageResult:
        logger.info(f"[{job.job_id}] 准备工作目录: {workspace}")
        try:
            workspace.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return StageResult.failed("PREPARE_WORKSPACE", ErrorKind.WORKSPACE_ERROR, str(e))

        logger.info(f"[{job.job_id}] 开始构建: project={job.project_id} version={job.version}")
        try:
            return self.executor.run(job, workspace)
        except Exception as e:
            logger.exception(f"[{job.job_id}] 流水线执行异常")
            detail = "".join(traceback.format_exception_only(type(e), e)).strip()
            return StageResult.failed("PIPELINE", ErrorKind.UNEXPECTED_ERROR, detail)

    def _report(self, job: Job, result: StageResult) -> JobOutcome:
        try:
            if result.ok:
                artifacts = self.build_artifacts(job)
                self.queue.complete(job.job_id, artifacts)
                logger.info(f"[{job.job_id}] 构建成功: {artifacts.apk_url}")
                return JobOutcome.SUCCEEDED

            self.queue.fail(job.job_id, result.error_log)
            logger.warning(f"[{job.job_id}] 构建失败: {result.stage} ({result.kind.value})")
        except Exception:
            logger.exception(f"[{job.job_id}] 回写结果失败")
            return JobOutcome.FAILED
        return JobOutcome.FAILED

    def _cleanup(self, job_id: str, workspace: Path) -> None:
        logger.info(f"[{job_id}] 清理工作目录")
        try:
            shutil.rmtree(workspace)
        except FileNotFoundError:
            pass
        except OSError:
            logger.exception(f"[{job_id}] 清理工作目录失败: {workspace}")
            shutil.rmtree(workspace, ignore_errors=True)
