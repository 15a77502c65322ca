"""
配置层 - 加载运行期配置并初始化日志

职责：
- 加载 config/worker.yaml（运行期参数）
- 提供类型安全的配置访问接口
- 按配置安装日志处理器
"""

from .logging_setup import setup_logging
from .runtime_config import (
    ReleaseConfig,
    RuntimeConfig,
    ToolchainConfig,
    WorkspaceConfig,
    get_config,
    reload_config,
)

__all__ = [
    "RuntimeConfig",
    "ReleaseConfig",
    "ToolchainConfig",
    "WorkspaceConfig",
    "get_config",
    "reload_config",
    "setup_logging",
]
