"""
流水线阶段定义

职责：
1. 定义各阶段的名称、工作目录与命令模板
2. 由工作目录布局推导中间产物路径

阶段顺序固定：
CLONE_SOURCE → INSTALL_DEPENDENCIES → SYNC_NATIVE_SHELL → COMPILE_BUNDLE
→ CONVERT_BUNDLE → EXTRACT_UNIVERSAL_APK
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from ..config import ToolchainConfig, WorkspaceConfig
    from ..models import Job


class StageEnum(str, Enum):
    """流水线阶段枚举"""
    CLONE_SOURCE = "CLONE_SOURCE"
    INSTALL_DEPENDENCIES = "INSTALL_DEPENDENCIES"
    SYNC_NATIVE_SHELL = "SYNC_NATIVE_SHELL"
    COMPILE_BUNDLE = "COMPILE_BUNDLE"
    CONVERT_BUNDLE = "CONVERT_BUNDLE"
    EXTRACT_UNIVERSAL_APK = "EXTRACT_UNIVERSAL_APK"


@dataclass(frozen=True)
class BuildContext:
    """单个任务的构建上下文（路径均为绝对路径）"""
    job: Job
    root: Path
    toolchain: ToolchainConfig
    layout: WorkspaceConfig

    @property
    def platform_dir(self) -> Path:
        return self.root / self.layout.platform_dir

    @property
    def bundle_path(self) -> Path:
        return self.root / self.layout.bundle_path

    @property
    def apks_path(self) -> Path:
        return self.root / self.layout.apks_name

    @property
    def apk_path(self) -> Path:
        return self.root / self.layout.apk_entry


@dataclass(frozen=True)
class PipelineStage:
    """流水线阶段"""
    name: str
    cwd: Callable[[BuildContext], Path]
    command: Callable[[BuildContext], list[str]] | None = None  # None: 非进程阶段

    def argv(self, ctx: BuildContext) -> list[str]:
        if self.command is None:
            raise ValueError(f"阶段 {self.name} 不执行外部命令")
        return self.command(ctx)


def _root(ctx: BuildContext) -> Path:
    return ctx.root


def _platform(ctx: BuildContext) -> Path:
    return ctx.platform_dir


def _clone(ctx: BuildContext) -> list[str]:
    # "--" 防止 sourceUrl 被当作选项解析
    return [ctx.toolchain.git, "clone", "--", ctx.job.source_url, "."]


def _install(ctx: BuildContext) -> list[str]:
    return [ctx.toolchain.npm, "install"]


def _sync(ctx: BuildContext) -> list[str]:
    return [ctx.toolchain.npx, "cap", "sync", ctx.toolchain.platform]


def _compile(ctx: BuildContext) -> list[str]:
    return [ctx.toolchain.gradlew, "bundleRelease"]


def _convert(ctx: BuildContext) -> list[str]:
    return [
        ctx.toolchain.java,
        "-jar",
        ctx.toolchain.bundletool_jar,
        "build-apks",
        f"--bundle={ctx.bundle_path}",
        f"--output={ctx.apks_path}",
        "--mode=universal",
    ]


# 构建流水线各阶段配置
BUILD_STAGES: list[PipelineStage] = [
    PipelineStage(StageEnum.CLONE_SOURCE.value, _root, _clone),
    PipelineStage(StageEnum.INSTALL_DEPENDENCIES.value, _root, _install),
    PipelineStage(StageEnum.SYNC_NATIVE_SHELL.value, _root, _sync),
    PipelineStage(StageEnum.COMPILE_BUNDLE.value, _platform, _compile),
    PipelineStage(StageEnum.CONVERT_BUNDLE.value, _root, _convert),
    PipelineStage(StageEnum.EXTRACT_UNIVERSAL_APK.value, _root),
]
