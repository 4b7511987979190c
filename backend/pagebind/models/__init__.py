"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- Element: 编辑器输出的画布元素（只读）
- DataSet: 表头 + 行记录
- Rect: 重排用工作矩形
- CatalogSections/CatalogPlan: 目录分节与结构规划结果
- PageDocument: 单页渲染输出
- ExportJob: 导出任务状态与生命周期
"""

from .catalog import (
    CatalogPlan,
    CatalogSection,
    CatalogSections,
    PageMapEntry,
    SectionType,
    StructureItem,
)
from .dataset import DataSet
from .document import BuildReport, PageDocument
from .element import (
    Dimension,
    Element,
    ElementFormat,
    ElementType,
    Position,
    PropertyRow,
    ShapeStyle,
    TableColumn,
    TableSettings,
    TextStyle,
    TocSettings,
)
from .geometry import Rect
from .job import (
    ExportJob,
    ExportMode,
    ExportOptions,
    ExportResult,
    JobChunk,
    JobStatus,
    JobType,
)

__all__ = [
    "Element",
    "ElementType",
    "ElementFormat",
    "Position",
    "Dimension",
    "TextStyle",
    "ShapeStyle",
    "TableColumn",
    "TableSettings",
    "PropertyRow",
    "TocSettings",
    "Rect",
    "DataSet",
    "SectionType",
    "CatalogSection",
    "CatalogSections",
    "StructureItem",
    "PageMapEntry",
    "CatalogPlan",
    "PageDocument",
    "BuildReport",
    "ExportJob",
    "ExportMode",
    "ExportOptions",
    "ExportResult",
    "JobChunk",
    "JobStatus",
    "JobType",
]
