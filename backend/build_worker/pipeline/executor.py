"""
流水线执行器 - 编排各阶段执行

职责：
1. 按顺序执行各阶段
2. 遇到第一个失败阶段立即停止，后续阶段不再执行
3. 返回最后一个已执行阶段的结果

测试要点：
- test_execute_full_pipeline: 完整流水线执行
- test_stage_failure_stops_pipeline: 阶段失败后停止
- test_artifact_not_found: 产物缺失为独立错误类别
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import RuntimeConfig, get_config
from ..interfaces import ArchiveError, IArchiveExtractor, IProcessRunner
from .extractor import ArchiveExtractor
from .results import ErrorKind, StageResult
from .runner import ProcessRunner
from .stages import BUILD_STAGES, BuildContext, PipelineStage, StageEnum

if TYPE_CHECKING:
    from ..models import Job

logger = logging.getLogger(__name__)


class PipelineExecutor:
    """流水线执行器"""

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        runner: IProcessRunner | None = None,
        extractor: IArchiveExtractor | None = None,
        stages: list[PipelineStage] | None = None,
    ):
        self.config = config or get_config()
        self.runner = runner or ProcessRunner()
        self.extractor = extractor or ArchiveExtractor()
        self.stages = stages if stages is not None else BUILD_STAGES

    def run(self, job: Job, workspace: Path) -> StageResult:
        """执行流水线"""
        ctx = BuildContext(
            job=job,
            root=workspace,
            toolchain=self.config.toolchain,
            layout=self.config.workspace,
        )

        result = StageResult.failed("INIT", ErrorKind.UNEXPECTED_ERROR, "流水线未定义任何阶段")
        for stage in self.stages:
            logger.info(f"[{job.job_id}] 开始阶段: {stage.name}")
            result = self._execute_stage(ctx, stage)
            if not result.ok:
                logger.error(f"[{job.job_id}] 阶段失败 {stage.name}: {result.kind.value}")
                return result
            logger.info(f"[{job.job_id}] 完成阶段: {stage.name}")

        return result

    def _execute_stage(self, ctx: BuildContext, stage: PipelineStage) -> StageResult:
        """执行单个阶段"""
        if stage.name == StageEnum.EXTRACT_UNIVERSAL_APK.value:
            return self._stage_extract(ctx, stage)

        outcome = self.runner.run(
            stage.argv(ctx),
            stage.cwd(ctx),
            timeout=self.config.timeouts.stage_sec,
        )
        if not outcome.ok:
            return StageResult.failed(stage.name, ErrorKind.STAGE_FAILED, outcome.diagnostic())
        return StageResult.passed(stage.name)

    def _stage_extract(self, ctx: BuildContext, stage: PipelineStage) -> StageResult:
        """从转换输出中提取通用安装包"""
        entry = ctx.layout.apk_entry
        try:
            found = self.extractor.extract_entry(ctx.apks_path, entry, ctx.apk_path)
        except ArchiveError as e:
            return StageResult.failed(stage.name, ErrorKind.ARCHIVE_ERROR, str(e))

        if not found:
            return StageResult.failed(
                stage.name,
                ErrorKind.ARTIFACT_NOT_FOUND,
                f"{entry} not found in output bundle: {ctx.apks_path.name}",
            )
        return StageResult.passed(stage.name)
