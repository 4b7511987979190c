"""
配置层 - 运行期配置、设计文档加载与日志

职责：
- 加载 config/runtime.yaml（运行期参数）
- 加载编辑器保存的设计文档（YAML/JSON）
- 提供类型安全的配置访问接口
"""

from .logging_config import setup_logging
from .runtime_config import RuntimeConfig, get_config, reload_config
from .template_loader import DesignDocument, TemplateLoader, load_design

__all__ = [
    "RuntimeConfig",
    "get_config",
    "reload_config",
    "DesignDocument",
    "TemplateLoader",
    "load_design",
    "setup_logging",
]
