"""
本地分块存储 - IBlobStore 的文件系统实现

键名即相对存储根目录的路径（如 inputs/<job_id>_part0.html）
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import get_config
from ..interfaces import IBlobStore

if TYPE_CHECKING:
    from ..config import RuntimeConfig

logger = logging.getLogger(__name__)


class LocalBlobStore(IBlobStore):
    """文件系统分块存储"""

    def __init__(self, root: str | Path | None = None, config: RuntimeConfig | None = None):
        if root is None:
            root = (config or get_config()).storage_dir
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"非法的存储键: {key}")
        return path

    def save(self, key: str, content: str, content_type: str = "text/html") -> str:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
        logger.debug(f"已保存 {key} ({len(content)} 字符, {content_type})")
        return key

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def read(self, key: str) -> str:
        return self.path_for(key).read_text(encoding="utf-8")
