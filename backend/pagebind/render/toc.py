"""
目录列表 - 分页与渲染

职责：
1. 按容量把页码映射切分为多页（标题只占第一页；容量 × 栏数）
2. 有分组字段时按分组插入章节标题（无分组值归入 Uncategorized）
3. 生成目录列表的HTML（标题仅第一页显示，多栏均衡排布）

测试要点：
- test_paginate_empty: 空映射返回一页空列表
- test_paginate_overflow: 超出容量时分页
- test_title_first_page_only: 标题仅第一页
"""

from __future__ import annotations

import html
from dataclasses import dataclass

from ..models import Element, PageMapEntry, TextStyle, TocSettings
from .styles import css, font_stack

TOC_PADDING = 32
TITLE_MARGIN = 10
HEADER_MARGIN = 12
ITEM_MARGIN = 2
UNCATEGORIZED = "Uncategorized"

_LEADERS = {"dotted": "1px dotted #ccc", "solid": "1px solid #ccc", "none": "none"}


@dataclass
class TocRow:
    """目录行：章节标题或条目"""
    kind: str  # "header" | "item"
    text: str
    page: int | None = None
    group: str | None = None


def item_style(element: Element) -> TextStyle:
    return element.text_style or TextStyle(font_size=14, line_height=1.5)


def toc_settings(element: Element) -> TocSettings:
    return element.toc_settings or TocSettings()


def build_toc_rows(page_map: list[PageMapEntry], group_by_field: str | None) -> list[TocRow]:
    """页码映射 → 目录行（分组按首次出现顺序）"""
    if not group_by_field:
        return [TocRow(kind="item", text=e.title, page=e.page, group=e.group) for e in page_map]

    groups: dict[str, list[PageMapEntry]] = {}
    for entry in page_map:
        groups.setdefault(entry.group or UNCATEGORIZED, []).append(entry)

    rows: list[TocRow] = []
    for title, entries in groups.items():
        rows.append(TocRow(kind="header", text=title))
        rows.extend(TocRow(kind="item", text=e.title, page=e.page, group=e.group) for e in entries)
    return rows


def paginate_toc(element: Element, page_map: list[PageMapEntry], element_height: float | None = None) -> list[list[TocRow]]:
    """按元素高度切分目录行（至少返回一页）"""
    settings = toc_settings(element)
    style = item_style(element)
    height = element.dimension.height if element_height is None else element_height
    available = height - TOC_PADDING

    title_height = 0.0
    if settings.show_title:
        title_height = settings.title_style.font_size * settings.title_style.line_height + TITLE_MARGIN
    header_height = settings.chapter_style.font_size * settings.chapter_style.line_height + HEADER_MARGIN
    item_height = style.font_size * style.line_height + ITEM_MARGIN

    next_capacity = available * settings.column_count
    capacity = (available - title_height) * settings.column_count
    used = 0.0

    pages: list[list[TocRow]] = []
    current: list[TocRow] = []

    for row in build_toc_rows(page_map, settings.group_by_field):
        row_height = header_height if row.kind == "header" else item_height
        if used + row_height > capacity and current:
            pages.append(current)
            current = []
            used = 0.0
            capacity = next_capacity
        current.append(row)
        used += row_height

    if current:
        pages.append(current)
    return pages or [[]]


def render_toc(element: Element, rows: list[TocRow], show_title: bool = True) -> str:
    """目录元素内部HTML"""
    settings = toc_settings(element)
    style = item_style(element)
    parts: list[str] = []

    if settings.show_title and show_title:
        ts = settings.title_style
        title_css = css({
            "font-family": font_stack(ts.font_family),
            "font-size": f"{ts.font_size}px",
            "font-weight": ts.font_weight,
            "color": ts.color,
            "text-align": ts.text_align,
            "line-height": ts.line_height,
            "margin-bottom": f"{TITLE_MARGIN}px",
            "flex-shrink": 0,
        })
        parts.append(f'<div class="toc-title" style="{title_css}">{html.escape(settings.title)}</div>')

    list_css = {
        "flex": 1,
        "overflow": "hidden",
        "font-family": font_stack(style.font_family),
        "font-size": f"{style.font_size}px",
        "font-weight": style.font_weight,
        "color": style.color,
        "line-height": style.line_height,
    }
    if settings.column_count > 1:
        list_css.update({
            "column-count": settings.column_count,
            "column-gap": "24px",
            "column-fill": "balance",
        })

    body = "".join(
        _header_html(row.text, settings) if row.kind == "header" else _item_html(row, settings)
        for row in rows
    )
    parts.append(f'<div class="toc-list" style="{css(list_css)}">{body}</div>')
    return "".join(parts)


def _header_html(text: str, settings: TocSettings) -> str:
    cs = settings.chapter_style
    header_css = css({
        "font-family": font_stack(cs.font_family),
        "font-size": f"{cs.font_size}px",
        "font-weight": cs.font_weight,
        "color": cs.color,
        "text-align": cs.text_align,
        "line-height": cs.line_height,
        "break-inside": "avoid",
    })
    return f'<div class="toc-chapter" style="{header_css}">{html.escape(text)}</div>'


def _item_html(row: TocRow, settings: TocSettings) -> str:
    row_css = css({
        "display": "flex",
        "justify-content": "space-between",
        "align-items": "baseline",
        "padding-bottom": f"{ITEM_MARGIN}px",
        "break-inside": "avoid",
    })
    leader = f'<span style="flex: 1; border-bottom: {_LEADERS[settings.leader_style]}; margin: 0 4px"></span>'
    page = ""
    if settings.show_page_numbers and row.page is not None:
        page = f'<span class="toc-page">{row.page}</span>'
    return (
        f'<div class="toc-item" style="{row_css}">'
        f'<span class="toc-entry" style="white-space: nowrap; overflow: hidden; text-overflow: ellipsis">'
        f"{html.escape(row.text)}</span>{leader}{page}</div>"
    )
