"""
设计文档加载器 - 读取编辑器保存的设计（YAML/JSON）

职责：
- 解析设计文件并提供类型安全访问（画布尺寸/页面元素/目录分节）
- 兼容编辑器 camelCase 键名
- 缓存加载结果（避免重复解析）

使用方式：
    design = TemplateLoader.load("designs/catalog.yaml")
    sections = design.catalog_sections()
    page_0 = design.elements_for_page(0)
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..interfaces import TemplateError
from ..models import CatalogSection, CatalogSections, Element


class DesignDocument(BaseModel):
    """设计文档（编辑器保存结构）"""
    name: str = "Untitled Project"
    type: Literal["single", "catalog"] = "single"
    canvas_width: float = 816
    canvas_height: float = 1056
    page_count: int = 1
    background_color: str = "#ffffff"
    elements: list[Element] = Field(default_factory=list)

    # 目录模式
    catalog_sections: dict[str, CatalogSection] = Field(default_factory=dict)
    chapter_designs: dict[str, CatalogSection] = Field(default_factory=dict)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    @property
    def is_catalog(self) -> bool:
        return self.type == "catalog"

    def elements_for_page(self, page_index: int) -> list[Element]:
        """获取指定页的元素"""
        return [el for el in self.elements if el.page_index == page_index]

    def get_sections(self) -> CatalogSections:
        """组装目录分节（缺失的分节为空）"""
        data: dict[str, CatalogSection] = {
            k: v for k, v in self.catalog_sections.items()
            if k in ("cover", "toc", "chapter", "product", "back")
        }
        return CatalogSections(**data, chapter_designs=dict(self.chapter_designs))


class TemplateLoader:
    """设计文档加载器（带缓存）"""

    @staticmethod
    @lru_cache(maxsize=32)
    def load(design_path: str | Path) -> DesignDocument:
        """加载并缓存设计文档"""
        path = Path(design_path)
        if not path.exists():
            raise FileNotFoundError(f"设计文件不存在: {path}")

        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)

        try:
            return DesignDocument.model_validate(data or {})
        except ValidationError as e:
            raise TemplateError(f"设计文件格式错误: {path}: {e}") from e

    @staticmethod
    def reload(design_path: str | Path) -> DesignDocument:
        """强制重新加载（清除缓存）"""
        TemplateLoader.load.cache_clear()
        return TemplateLoader.load(design_path)


# 便捷函数
def load_design(design_path: str | Path) -> DesignDocument:
    """加载设计文档"""
    return TemplateLoader.load(design_path)
