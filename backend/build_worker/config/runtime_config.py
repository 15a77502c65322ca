"""
运行期配置 - 读取 config/worker.yaml

职责：
- 加载队列/工作目录/工具链/发布地址/超时/并发等运行参数
- 提供环境变量覆盖机制（前缀 BUILD_WORKER_，嵌套分隔符 __）
- 类型安全的配置访问
"""

from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

SECTIONS = ("queue", "workspace", "toolchain", "release", "timeouts", "concurrency", "logging")

# from_yaml 构造期间生效的 YAML 配置
_yaml_sections: ContextVar[dict[str, Any]] = ContextVar("_yaml_sections", default={})


class QueueConfig(BaseModel):
    """任务队列配置"""

    project_id: str | None = None
    database: str | None = None
    collection: str = "builds"
    credentials_path: str | None = None


class WorkspaceConfig(BaseModel):
    """工作目录布局"""

    root: str = "builds"
    platform_dir: str = "android"
    bundle_path: str = "android/app/build/outputs/bundle/release/app-release.aab"
    apks_name: str = "output.apks"
    apk_entry: str = "universal.apk"


class ToolchainConfig(BaseModel):
    """外部工具链命令"""

    git: str = "git"
    npm: str = "npm"
    npx: str = "npx"
    gradlew: str = "./gradlew"
    java: str = "java"
    bundletool_jar: str = "bundletool.jar"
    platform: str = "android"


class ReleaseConfig(BaseModel):
    """产物发布地址"""

    host: str = "https://github.com"
    releases_path: str = "YourUser/YourRepo/releases/download"
    aab_filename: str = "app-release.aab"
    apk_filename: str = "universal.apk"

    def artifact_url(self, version: str, filename: str) -> str:
        """<host>/<releases_path>/v<version>/<filename>"""
        host = self.host.rstrip("/")
        path = self.releases_path.strip("/")
        return f"{host}/{path}/v{version}/{filename}"


class TimeoutConfig(BaseModel):
    """超时配置"""

    stage_sec: float | None = None


class ConcurrencyConfig(BaseModel):
    """并发配置"""

    max_jobs: int = 4


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"


class YamlSectionsSource(PydanticBaseSettingsSource):
    """YAML 配置源（优先级低于环境变量）"""

    def get_field_value(self, field, field_name: str) -> tuple[Any, str, bool]:
        return _yaml_sections.get().get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(_yaml_sections.get())


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    config_path: Path = Path("config/worker.yaml")

    # 各子配置
    queue: QueueConfig = Field(default_factory=QueueConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "BUILD_WORKER_",
        "env_nested_delimiter": "__",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # 优先级：构造参数 > 环境变量 > YAML > 默认值
        return (
            init_settings,
            env_settings,
            YamlSectionsSource(settings_cls),
            dotenv_settings,
            file_secret_settings,
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        token = _yaml_sections.set({key: cls._extract(data, key) for key in SECTIONS})
        try:
            config = cls(config_path=path)
        finally:
            _yaml_sections.reset(token)

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置（支持 {default: ...} 写法）"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        root = Path(self.workspace.root)
        if not root.is_absolute():
            self.workspace.root = str((base_dir / root).resolve())
        jar = Path(self.toolchain.bundletool_jar)
        if not jar.is_absolute():
            self.toolchain.bundletool_jar = str((base_dir / jar).resolve())
        if self.queue.credentials_path:
            cred = Path(self.queue.credentials_path)
            if not cred.is_absolute():
                self.queue.credentials_path = str((base_dir / cred).resolve())
        log_dir = Path(self.logging.log_dir)
        if not log_dir.is_absolute():
            self.logging.log_dir = str((base_dir / log_dir).resolve())

    def get_workspace_root(self) -> Path:
        return Path(self.workspace.root)

    def get_job_dir(self, job_id: str) -> Path:
        """获取任务工作目录（以job_id为键，互不重叠）"""
        return self.get_workspace_root() / job_id

    def ensure_dirs(self) -> None:
        """确保必要目录存在"""
        self.get_workspace_root().mkdir(parents=True, exist_ok=True)


# 全局配置实例
_config: RuntimeConfig | None = None

DEFAULT_CONFIG_PATH = Path("config/worker.yaml")


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        _config = RuntimeConfig.from_yaml(DEFAULT_CONFIG_PATH)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or DEFAULT_CONFIG_PATH
    _config = RuntimeConfig.from_yaml(path)
    return _config
