"""
目录结构模型 - 分节设计、结构条目、页码映射

结构条目顺序即最终页序：cover → toc → (chapter → product...)... → back
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from .element import Element, ElementType


class SectionType(str, Enum):
    """分节类型"""
    COVER = "cover"
    TOC = "toc"
    CHAPTER = "chapter"
    PRODUCT = "product"
    BACK = "back"


class CatalogSection(BaseModel):
    """单个分节的设计（元素 + 背景色）"""
    elements: list[Element] = Field(default_factory=list)
    background_color: str = Field("#ffffff", alias="backgroundColor")

    model_config = {"populate_by_name": True}

    @property
    def has_content(self) -> bool:
        return len(self.elements) > 0

    def find_toc_element(self) -> Element | None:
        for el in self.elements:
            if el.type == ElementType.TOC_LIST:
                return el
        return None


class CatalogSections(BaseModel):
    """目录模式的全部分节 + 分组专属章节设计"""
    cover: CatalogSection = Field(default_factory=CatalogSection)
    toc: CatalogSection = Field(default_factory=CatalogSection)
    chapter: CatalogSection = Field(default_factory=CatalogSection)
    product: CatalogSection = Field(default_factory=CatalogSection)
    back: CatalogSection = Field(default_factory=CatalogSection)
    chapter_designs: dict[str, CatalogSection] = Field(default_factory=dict, alias="chapterDesigns")

    model_config = {"populate_by_name": True}

    def get(self, kind: SectionType) -> CatalogSection:
        return getattr(self, kind.value)

    def chapter_for(self, group: str | None) -> CatalogSection:
        """分组有专属设计时优先使用，否则用默认章节页"""
        if group and group in self.chapter_designs:
            return self.chapter_designs[group]
        return self.chapter


class StructureItem(BaseModel):
    """结构条目（每条对应一个最终页面）"""
    kind: SectionType
    page: int
    section: CatalogSection
    group: str | None = None
    row: dict[str, str] | None = None
    row_index: int | None = None


class PageMapEntry(BaseModel):
    """页码映射条目（每个产品页一条，用于回填目录）"""
    title: str
    page: int
    group: str | None = None


class CatalogPlan(BaseModel):
    """结构规划结果"""
    structure: list[StructureItem] = Field(default_factory=list)
    page_map: list[PageMapEntry] = Field(default_factory=list)
    title_column: str | None = None
    toc_pages: int = 0
    total_pages: int = 0

    @property
    def product_count(self) -> int:
        return sum(1 for item in self.structure if item.kind == SectionType.PRODUCT)

    @property
    def chapter_count(self) -> int:
        return sum(1 for item in self.structure if item.kind == SectionType.CHAPTER)
