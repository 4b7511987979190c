"""
几何模型 - 元素矩形

重排过程中每个元素对应一个工作矩形（x/y/width/height，画布像素）
"""

from __future__ import annotations

from pydantic import BaseModel


class Rect(BaseModel):
    """矩形（左上角 + 宽高）"""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def overlaps_horizontally(self, other: Rect) -> bool:
        """判断水平方向是否重叠（仅相接不算重叠）"""
        return self.x < other.right and other.x < self.right

    def shifted(self, dy: float) -> Rect:
        return self.model_copy(update={"y": self.y + dy})

    def resized(self, height: float) -> Rect:
        return self.model_copy(update={"height": height})
