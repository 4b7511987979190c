"""
运行期配置 - 读取 config/runtime.yaml

职责：
- 加载分块/轮询/超时/重试/并发/图片/日志等运行参数
- 提供环境变量覆盖机制（PAGEBIND_ 前缀，__ 分隔嵌套）
- 类型安全的配置访问
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ExportConfig(BaseModel):
    """导出配置"""

    chunk_size: int = Field(5, ge=1)
    canvas_width: float = 816
    canvas_height: float = 1056
    worker_url: str = "http://localhost:8080"


class PollingConfig(BaseModel):
    """轮询配置"""

    interval_sec: float = 2.0
    max_attempts: int = 150
    backoff_factor: float = 1.5
    max_interval_sec: float = 10.0


class TimeoutConfig(BaseModel):
    """超时配置"""

    dispatch_sec: float = 10
    upload_sec: float = 30
    image_fetch_sec: float = 15


class RetryConfig(BaseModel):
    """重试配置"""

    max_retries: int = 2
    retry_backoff_ms: int = 1000


class ConcurrencyConfig(BaseModel):
    """并发配置"""

    max_workers: int = 4
    max_jobs: int = 4


class ImageConfig(BaseModel):
    """图片配置"""

    digital_max_scale: float = 2.0
    jpeg_quality: int = Field(75, ge=1, le=95)
    min_print_dpi: float = 295
    digital_scale: float = 2.0
    print_scale: float = 3.125


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = True


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 存储根目录（任务记录、分块标记、日志）
    storage_dir: Path = Path("storage")
    config_path: Path | None = None

    # 各子配置
    export: ExportConfig = Field(default_factory=ExportConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    retries: RetryConfig = Field(default_factory=RetryConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    images: ImageConfig = Field(default_factory=ImageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "PAGEBIND_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """
        从YAML文件加载配置（文件不存在时使用默认值）

        YAML 中的相对 storage_dir 以配置文件所在目录为基准
        """
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        options = data.get("runtime_options") or {}

        sections = {name: _flatten(options.get(name)) for name in SECTION_NAMES}
        config = cls(**{name: values for name, values in sections.items() if values})

        if options.get("storage_dir"):
            storage_dir = Path(options["storage_dir"])
            config.storage_dir = storage_dir if storage_dir.is_absolute() else (path.parent / storage_dir).resolve()
        config.config_path = path
        return config

    def get_job_dir(self, job_id: str) -> Path:
        """任务记录目录（job.json / manifest.json）"""
        return self.storage_dir / "jobs" / job_id

    def get_inputs_dir(self) -> Path:
        """分块标记目录"""
        return self.storage_dir / "inputs"

    def get_log_dir(self) -> Path:
        return self.storage_dir / "logs"

    def ensure_dirs(self) -> None:
        for directory in (self.storage_dir, self.storage_dir / "jobs", self.get_inputs_dir()):
            directory.mkdir(parents=True, exist_ok=True)


# YAML 中的分节名 = RuntimeConfig 字段名
SECTION_NAMES = ("export", "polling", "timeouts", "retries", "concurrency", "images", "logging")


def _flatten(section: dict[str, Any] | None) -> dict[str, Any]:
    """{key: {default: v, desc: ...}} → {key: v}；嵌套的其他字典忽略"""
    values: dict[str, Any] = {}
    for key, value in (section or {}).items():
        if isinstance(value, dict):
            if "default" in value:
                values[key] = value["default"]
        else:
            values[key] = value
    return values


DEFAULT_CONFIG_PATH = Path("config/runtime.yaml")


def default_config_path() -> Path:
    """PAGEBIND_CONFIG 环境变量优先，否则 config/runtime.yaml"""
    return Path(os.environ.get("PAGEBIND_CONFIG") or DEFAULT_CONFIG_PATH)


_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """当前生效的配置（首次调用时加载）"""
    global _config
    if _config is None:
        _config = RuntimeConfig.from_yaml(default_config_path())
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """替换当前配置"""
    global _config
    _config = RuntimeConfig.from_yaml(yaml_path or default_config_path())
    return _config
