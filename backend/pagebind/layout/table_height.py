"""
表格高度计算 - 数据驱动表格的所需高度

职责：
1. 解析表格的有效行（属性表取当前记录下可见的静态行；数据表按 groupByField 过滤）
2. 根据表头/行样式计算所需高度（属性表不绘制表头）

默认实现为纯函数，可替换为任意符合 IHeightFunction 的实现。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..interfaces import LayoutError
from ..tokens import has_tokens, substitute_tokens

if TYPE_CHECKING:
    from ..models import DataSet, Element, TableSettings, TextStyle


def resolve_table_rows(
    settings: TableSettings,
    dataset: DataSet,
    group_value: str | None,
) -> list[dict[str, str]]:
    """数据表的有效行：有分组字段且有分组值时取分组子集，否则取全部"""
    if settings.group_by_field and group_value is not None:
        return dataset.filter_by(settings.group_by_field, group_value)
    return list(dataset.rows)


def visible_property_rows(settings: TableSettings, record: dict[str, str] | None) -> list[tuple[str, str]]:
    """属性表可见行（label, 替换后的 value）：带占位符且替换后为空的行隐藏，未解析的占位符原样保留"""
    record = record or {}
    rows: list[tuple[str, str]] = []
    for row in settings.static_rows:
        value = substitute_tokens(row.value, record)
        if has_tokens(row.value) and not value.strip():
            continue
        rows.append((row.label, value))
    return rows


def _line_box(style: TextStyle, padding: float) -> float:
    return style.font_size * style.line_height + padding * 2


class TableHeightCalculator:
    """默认表格高度函数：表头行（仅数据表）+ 行数 × 行高"""

    def __call__(
        self,
        table: Element,
        dataset: DataSet,
        group_value: str | None,
        record: dict[str, str] | None = None,
    ) -> float:
        settings = table.table_settings
        if settings is None:
            raise LayoutError(f"表格缺少 tableSettings: {table.id}", element_id=table.id)

        if settings.variant == "properties":
            count = len(visible_property_rows(settings, record))
            header_height = 0.0
        else:
            if not settings.columns:
                raise LayoutError(f"表格未配置列: {table.id}", element_id=table.id)
            count = len(resolve_table_rows(settings, dataset, group_value))
            header_height = self.header_height(settings)

        return header_height + count * self.row_height(settings) + settings.border_width * 2

    @staticmethod
    def row_height(settings: TableSettings) -> float:
        return max(settings.min_row_height, _line_box(settings.row_style, settings.cell_padding))

    @staticmethod
    def header_height(settings: TableSettings) -> float:
        if not settings.show_header:
            return 0.0
        return max(settings.min_row_height, _line_box(settings.header_style, settings.cell_padding))
