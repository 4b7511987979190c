"""
目录结构规划器 - 分节 + 数据集 → 有序页序列 + 页码映射

职责：
1. 按 封面 → 目录 → (章节页 → 产品页...)... → 封底 生成结构条目
2. 页码从1开始顺序分配，一次构建内唯一
3. 确定标题列并生成目录回填用的页码映射

测试要点：
- test_row_order: 条目顺序
- test_chapter_dividers: 连续同组不重复生成章节页
- test_page_map: 页码映射与产品页一一对应、严格递增
- test_title_column_fallback: 标题列回退规则
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..models import CatalogPlan, PageMapEntry, SectionType, StructureItem

if TYPE_CHECKING:
    from ..models import CatalogSections, DataSet

logger = logging.getLogger(__name__)

TITLE_SYNONYMS = (
    "name",
    "title",
    "model",
    "product",
    "description",
    "item name",
    "product name",
)

_NO_GROUP = object()


def resolve_title_column(headers: list[str], group_by_field: str | None = None) -> str | None:
    """确定标题列：同义词优先 → 分组列为首列时取第二列 → 首列"""
    for header in headers:
        if header.strip().lower() in TITLE_SYNONYMS:
            return header
    if not headers:
        return None
    if group_by_field and headers[0] == group_by_field and len(headers) > 1:
        return headers[1]
    return headers[0]


class CatalogStructurePlanner:
    """目录结构规划器"""

    def plan(
        self,
        sections: CatalogSections,
        dataset: DataSet,
        group_by_field: str | None = None,
        headers: list[str] | None = None,
        title_field: str | None = None,
        toc_pages: int = 1,
    ) -> CatalogPlan:
        """
        生成结构与页码映射

        Args:
            sections: 各分节设计（含分组专属章节设计）
            dataset: 数据集（按行顺序生成产品页）
            group_by_field: 分组字段（为空则不生成章节页）
            headers: 表头（默认取数据集表头）
            title_field: 显式标题列（优先于同义词规则）
            toc_pages: 目录预留页数（目录分页由渲染决定，这里只占页码）
        """
        headers = headers if headers is not None else list(dataset.headers)
        title_column = title_field or resolve_title_column(headers, group_by_field)

        structure: list[StructureItem] = []
        page_map: list[PageMapEntry] = []
        page = 1

        # 1. 封面
        if sections.cover.has_content:
            structure.append(StructureItem(kind=SectionType.COVER, page=page, section=sections.cover))
            page += 1

        # 2. 目录（只占一个条目，可预留多页页码）
        reserved_toc = 0
        if sections.toc.has_content:
            reserved_toc = max(1, toc_pages)
            structure.append(StructureItem(kind=SectionType.TOC, page=page, section=sections.toc))
            page += reserved_toc

        # 3. 章节页 + 产品页
        previous_group: object = _NO_GROUP
        for index, row in enumerate(dataset.rows):
            group = row.get(group_by_field) if group_by_field else None

            if group_by_field and group != previous_group:
                previous_group = group
                structure.append(
                    StructureItem(
                        kind=SectionType.CHAPTER,
                        page=page,
                        section=sections.chapter_for(group),
                        group=group,
                        row=row,
                        row_index=index,
                    )
                )
                page += 1

            title = (row.get(title_column) if title_column else None) or f"Item {index + 1}"
            structure.append(
                StructureItem(
                    kind=SectionType.PRODUCT,
                    page=page,
                    section=sections.product,
                    group=group,
                    row=row,
                    row_index=index,
                )
            )
            page_map.append(PageMapEntry(title=title, page=page, group=group))
            page += 1

        # 4. 封底
        if sections.back.has_content:
            structure.append(StructureItem(kind=SectionType.BACK, page=page, section=sections.back))
            page += 1

        logger.info(
            f"目录规划完成: {len(structure)} 个条目, 产品页 {len(page_map)}, 共 {page - 1} 页"
        )
        return CatalogPlan(
            structure=structure,
            page_map=page_map,
            title_column=title_column,
            toc_pages=reserved_toc,
            total_pages=page - 1,
        )
