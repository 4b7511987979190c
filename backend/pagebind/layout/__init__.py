"""
重排模块 - 数据驱动表格的自适应高度与级联位移

子模块：
- reflow: 重排引擎与工作矩形表
- table_height: 默认表格高度函数
"""

from .reflow import HEIGHT_TOLERANCE, ReflowEngine, WorkingRectTable
from .table_height import TableHeightCalculator, resolve_table_rows, visible_property_rows

__all__ = [
    "ReflowEngine",
    "WorkingRectTable",
    "HEIGHT_TOLERANCE",
    "TableHeightCalculator",
    "resolve_table_rows",
    "visible_property_rows",
]
