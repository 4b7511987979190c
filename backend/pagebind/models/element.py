"""
画布元素模型 - 编辑器输出的定位元素

编辑器使用 camelCase 键名，这里统一用 snake_case 字段 + 别名读取。
核心模块只读取元素，不修改。
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .geometry import Rect

_EDITOR_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class ElementType(str, Enum):
    """元素类型"""
    TEXT = "text"
    DATA_FIELD = "dataField"
    IMAGE = "image"
    SHAPE = "shape"
    QRCODE = "qrcode"
    TABLE = "table"
    TOC_LIST = "toc-list"


class Position(BaseModel):
    x: float = 0
    y: float = 0


class Dimension(BaseModel):
    width: float = 0
    height: float = 0


class TextStyle(BaseModel):
    """文字样式"""
    font_family: str = "Inter"
    font_size: float = 16
    font_weight: int = 400
    color: str = "#000000"
    text_align: Literal["left", "center", "right"] = "left"
    vertical_align: Literal["top", "middle", "bottom"] = "middle"
    line_height: float = 1.5
    letter_spacing: float = 0

    model_config = _EDITOR_CONFIG


class ShapeStyle(BaseModel):
    """形状样式"""
    fill: str = "#e5e7eb"
    stroke: str = "#9ca3af"
    stroke_width: float = 1
    border_radius: float = 0
    opacity: float = 1

    model_config = _EDITOR_CONFIG


class ElementFormat(BaseModel):
    """数据格式化配置"""
    data_type: Literal["text", "number", "date", "boolean"] = "text"
    casing: Literal["none", "title", "upper", "lower"] = "none"
    decimal_places: int = 2
    use_fractions: bool = False
    fraction_precision: int = 16
    unit: str | None = None
    date_format: str = "MM/DD/YYYY"
    true_label: str | None = None
    false_label: str | None = None
    list_style: Literal["none", "disc", "circle", "square", "decimal"] = "none"

    model_config = _EDITOR_CONFIG


class TableColumn(BaseModel):
    """表格列"""
    id: str
    header: str
    data_field: str | None = None
    width: float = 100
    header_align: Literal["left", "center", "right"] = "left"
    row_align: Literal["left", "center", "right"] = "left"

    model_config = _EDITOR_CONFIG


class PropertyRow(BaseModel):
    """属性表静态行（值可含 {{Field}}）"""
    label: str
    value: str = ""

    model_config = _EDITOR_CONFIG


def _header_style() -> TextStyle:
    return TextStyle(font_size=14, font_weight=700, line_height=1.2)


def _row_style() -> TextStyle:
    return TextStyle(font_size=12, line_height=1.2)


class TableSettings(BaseModel):
    """表格配置"""
    variant: Literal["data", "properties"] = "data"
    columns: list[TableColumn] = Field(default_factory=list)
    static_rows: list[PropertyRow] = Field(default_factory=list)
    group_by_field: str | None = None
    auto_height_adaptation: bool = False
    show_header: bool = True
    min_row_height: float = 24
    equal_row_heights: bool = True

    header_style: TextStyle = Field(default_factory=_header_style)
    row_style: TextStyle = Field(default_factory=_row_style)

    header_background_color: str = "#f3f4f6"
    row_background_color: str = "#ffffff"
    alternate_row_color: str | None = None
    border_color: str = "#e5e7eb"
    border_width: float = 1
    cell_padding: float = 8

    model_config = _EDITOR_CONFIG


def _toc_title_style() -> TextStyle:
    return TextStyle(font_size=24, font_weight=700, vertical_align="top", line_height=1.2)


def _toc_chapter_style() -> TextStyle:
    return TextStyle(font_size=18, font_weight=600, color="#333333", line_height=1.5)


class TocSettings(BaseModel):
    """目录列表配置"""
    title: str = "Table of Contents"
    show_title: bool = True
    title_style: TextStyle = Field(default_factory=_toc_title_style)
    column_count: int = Field(1, ge=1, le=4)
    group_by_field: str | None = None
    chapter_covers_enabled: bool = False
    chapter_style: TextStyle = Field(default_factory=_toc_chapter_style)
    show_page_numbers: bool = True
    leader_style: Literal["dotted", "solid", "none"] = "dotted"

    model_config = _EDITOR_CONFIG


class Element(BaseModel):
    """画布元素"""
    id: str
    type: ElementType
    position: Position = Field(default_factory=Position)
    dimension: Dimension = Field(default_factory=Dimension)
    rotation: float = 0
    z_index: float = 0
    page_index: int = 0
    visible: bool = True
    locked: bool = False

    content: str | None = None
    data_binding: str | None = None

    text_style: TextStyle | None = None
    shape_style: ShapeStyle | None = None
    format: ElementFormat | None = None
    table_settings: TableSettings | None = None
    toc_settings: TocSettings | None = None

    shape_type: Literal["rectangle", "circle", "line"] | None = None
    image_src: str | None = None
    aspect_ratio_locked: bool = False

    model_config = _EDITOR_CONFIG

    @property
    def rect(self) -> Rect:
        """设计期矩形"""
        return Rect(
            x=self.position.x,
            y=self.position.y,
            width=self.dimension.width,
            height=self.dimension.height,
        )

    @property
    def is_driver(self) -> bool:
        """是否为驱动表格（高度由数据决定）"""
        return (
            self.type == ElementType.TABLE
            and self.table_settings is not None
            and self.table_settings.auto_height_adaptation
        )

    def at(self, rect: Rect) -> Element:
        """返回位于指定矩形的副本（原元素不变）"""
        return self.model_copy(
            update={
                "position": Position(x=rect.x, y=rect.y),
                "dimension": Dimension(width=rect.width, height=rect.height),
            }
        )
