"""
数据集模型 - 表头 + 行记录

一次构建内不可变；行记录为字符串键值映射
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class DataSet(BaseModel):
    """表格数据集"""
    headers: list[str] = Field(default_factory=list)
    rows: list[dict[str, str]] = Field(default_factory=list)
    file_name: str | None = None

    model_config = {"frozen": True}

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def row(self, index: int) -> dict[str, str]:
        """取指定行（越界返回空记录）"""
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return {}

    def filter_by(self, field: str, value: str | None) -> list[dict[str, str]]:
        """按字段值相等过滤"""
        return [r for r in self.rows if r.get(field) == value]

    def group_values(self, field: str) -> list[str]:
        """按出现顺序返回去重后的分组值"""
        seen: list[str] = []
        for r in self.rows:
            v = r.get(field, "")
            if v not in seen:
                seen.append(v)
        return seen
