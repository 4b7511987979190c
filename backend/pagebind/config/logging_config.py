"""
日志配置 - 根据 RuntimeConfig.logging 初始化 pagebind 日志

各模块统一使用 logging.getLogger(__name__)
"""

from __future__ import annotations

import logging
import logging.handlers

from .runtime_config import RuntimeConfig, get_config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def setup_logging(config: RuntimeConfig | None = None) -> logging.Logger:
    """初始化 pagebind 根日志器（重复调用不会重复添加 handler）"""
    config = config or get_config()
    logger = logging.getLogger("pagebind")
    logger.setLevel(getattr(logging, config.logging.log_level.upper(), logging.INFO))

    if logger.handlers:
        return logger

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console)

    if config.logging.log_to_file:
        log_dir = config.get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "pagebind.log",
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger
