"""
目录模块 - 产品目录结构规划

子模块：
- planner: 结构规划器与标题列解析
"""

from .planner import TITLE_SYNONYMS, CatalogStructurePlanner, resolve_title_column

__all__ = [
    "CatalogStructurePlanner",
    "resolve_title_column",
    "TITLE_SYNONYMS",
]
