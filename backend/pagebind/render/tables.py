"""
表格渲染 - 属性表与数据表

- properties: 静态行，值中的占位符替换后为空的行被隐藏（未解析的占位符原样显示，行保留）
- data: 数据集行，有 groupByField 时只取与当前记录同组的行
"""

from __future__ import annotations

import html

from ..layout import TableHeightCalculator, resolve_table_rows, visible_property_rows
from ..models import DataSet, Element, TableSettings, TextStyle
from .styles import css, font_stack


def data_rows(settings: TableSettings, dataset: DataSet, record: dict[str, str]) -> list[dict[str, str]]:
    group_value = record.get(settings.group_by_field) if settings.group_by_field else None
    return resolve_table_rows(settings, dataset, group_value)


def render_table(element: Element, dataset: DataSet, record: dict[str, str]) -> str:
    """表格元素内部HTML"""
    settings = element.table_settings or TableSettings()
    row_height = TableHeightCalculator.row_height(settings)
    header_height = TableHeightCalculator.header_height(settings)
    border = f"{settings.border_width}px solid {settings.border_color}"

    table_css = css({
        "width": "100%",
        "border-collapse": "collapse",
        "table-layout": "fixed",
        "border": border,
    })

    if settings.variant == "properties":
        header_cells = ["", ""]
        aligns = ["left", "left"]
        body_rows = [[label, value] for label, value in visible_property_rows(settings, record)]
        widths: list[float | None] = [None, None]
    else:
        header_cells = [col.header for col in settings.columns]
        aligns = [col.row_align for col in settings.columns]
        widths = [col.width for col in settings.columns]
        body_rows = [
            [row.get(col.data_field or col.header, "") for col in settings.columns]
            for row in data_rows(settings, dataset, record)
        ]

    parts = [f'<table style="{table_css}">']

    if widths and any(w is not None for w in widths):
        parts.append("<colgroup>")
        parts.extend(f'<col style="width: {w}px">' if w else "<col>" for w in widths)
        parts.append("</colgroup>")

    if settings.show_header and settings.variant == "data":
        header_aligns = [col.header_align for col in settings.columns]
        cells = "".join(
            _cell("th", text, settings.header_style, align, settings, border, header_height)
            for text, align in zip(header_cells, header_aligns)
        )
        parts.append(f'<thead><tr style="background-color: {settings.header_background_color}">{cells}</tr></thead>')

    parts.append("<tbody>")
    for index, values in enumerate(body_rows):
        background = settings.row_background_color
        if settings.alternate_row_color and index % 2 == 1:
            background = settings.alternate_row_color
        cells = "".join(
            _cell("td", value, settings.row_style, align, settings, border, row_height)
            for value, align in zip(values, aligns)
        )
        parts.append(f'<tr style="background-color: {background}">{cells}</tr>')
    parts.append("</tbody></table>")
    return "".join(parts)


def _cell(
    tag: str,
    text: str,
    style: TextStyle,
    align: str,
    settings: TableSettings,
    border: str,
    height: float,
) -> str:
    cell_css = css({
        "font-family": font_stack(style.font_family),
        "font-size": f"{style.font_size}px",
        "font-weight": style.font_weight,
        "color": style.color,
        "line-height": style.line_height,
        "text-align": align,
        "padding": f"{settings.cell_padding}px",
        "border": border,
        "height": f"{height}px" if settings.equal_row_heights else None,
        "box-sizing": "border-box",
        "overflow": "hidden",
    })
    return f'<{tag} style="{cell_css}">{html.escape(text)}</{tag}>'
