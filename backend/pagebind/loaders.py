"""
数据集加载 - 读取 xlsx / csv 表格为 DataSet

规则：
- 只读第一个工作表，第一行为表头（去空格，空表头丢弃）
- 全空行跳过
- 所有值转为字符串（整数型浮点去掉 .0，日期取 ISO 格式）

依赖：
- openpyxl: 读取 xlsx
"""

from __future__ import annotations

import csv
import logging
import zipfile
from datetime import date, datetime
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .interfaces import DatasetError
from .models import DataSet

logger = logging.getLogger(__name__)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def rows_to_dataset(raw_rows: list[list[Any]], file_name: str | None = None) -> DataSet:
    """二维数组 → DataSet（第一行为表头）"""
    if not raw_rows:
        raise DatasetError("表格为空")

    header_cells = [_cell_text(h).strip() for h in raw_rows[0]]
    columns = [(i, h) for i, h in enumerate(header_cells) if h]
    if not columns:
        raise DatasetError("第一行没有表头")

    rows: list[dict[str, str]] = []
    for raw in raw_rows[1:]:
        values = [_cell_text(v) for v in raw]
        if not any(v.strip() for v in values):
            continue
        rows.append({h: values[i] if i < len(values) else "" for i, h in columns})

    return DataSet(headers=[h for _, h in columns], rows=rows, file_name=file_name)


def load_xlsx(path: str | Path) -> DataSet:
    """读取 xlsx 第一个工作表"""
    path = Path(path)
    try:
        wb = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError) as e:
        raise DatasetError(f"无法读取表格: {path}: {e}") from e

    try:
        if not wb.sheetnames:
            raise DatasetError(f"工作簿没有工作表: {path}")
        ws = wb[wb.sheetnames[0]]
        raw_rows = [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()

    dataset = rows_to_dataset(raw_rows, file_name=path.name)
    logger.info(f"已加载数据集 {path.name}: {len(dataset.headers)} 列, {len(dataset)} 行")
    return dataset


def load_csv(path: str | Path, encoding: str = "utf-8-sig") -> DataSet:
    """读取 csv（默认兼容 BOM）"""
    path = Path(path)
    try:
        with open(path, encoding=encoding, newline="") as f:
            raw_rows = [row for row in csv.reader(f)]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise DatasetError(f"无法读取表格: {path}: {e}") from e

    dataset = rows_to_dataset(raw_rows, file_name=path.name)
    logger.info(f"已加载数据集 {path.name}: {len(dataset.headers)} 列, {len(dataset)} 行")
    return dataset


def load_dataset(path: str | Path) -> DataSet:
    """按扩展名选择加载方式"""
    suffix = Path(path).suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        return load_xlsx(path)
    if suffix == ".csv":
        return load_csv(path)
    raise DatasetError(f"不支持的表格格式: {suffix}")
