"""
动态重排引擎 - 数据驱动表格高度变化后的级联位移

职责：
1. 以设计期矩形初始化工作矩形表
2. 选出驱动表格（autoHeightAdaptation=true），按设计期 y 升序（同 y 按声明顺序）
3. 逐个驱动计算所需高度；变化超过 0.5px 时发起一次位移波：
   - 波内广度优先传播，每个元素最多被推动一次
   - 被推动条件：水平重叠 且 自身顶边严格大于推动者的顶边（不是推动者的旧底边）
   - 锁定元素永不移动
4. 返回全部元素的最终矩形

测试要点：
- test_non_driver_unchanged: 非驱动元素保持设计期矩形
- test_shift_overlapping_below: 下方重叠元素位移 Δ
- test_locked_never_moves: 锁定元素不动
- test_transitive_wave: 传递传播
- test_idempotent: 相同输入得到相同输出
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING

from ..interfaces import IHeightFunction, LayoutError
from .table_height import TableHeightCalculator

if TYPE_CHECKING:
    from ..models import DataSet, Element, Rect

logger = logging.getLogger(__name__)

HEIGHT_TOLERANCE = 0.5


class WorkingRectTable:
    """单页重排的工作矩形表（按元素ID索引，随页面构建创建和丢弃）"""

    def __init__(self, elements: list[Element]):
        self._rects: dict[str, Rect] = {}
        for el in elements:
            if el.id in self._rects:
                raise LayoutError(f"元素ID重复: {el.id}", element_id=el.id)
            self._rects[el.id] = el.rect

    def __getitem__(self, element_id: str) -> Rect:
        return self._rects[element_id]

    def __setitem__(self, element_id: str, rect: Rect) -> None:
        self._rects[element_id] = rect

    def __contains__(self, element_id: str) -> bool:
        return element_id in self._rects

    def snapshot(self) -> dict[str, Rect]:
        return dict(self._rects)


class ReflowEngine:
    """动态重排引擎（对输入无副作用，幂等）"""

    def __init__(self, height_fn: IHeightFunction | None = None):
        self.height_fn = height_fn or TableHeightCalculator()

    def compute(
        self,
        elements: list[Element],
        dataset: DataSet,
        record: dict[str, str] | None = None,
        page_index: int | None = None,
    ) -> dict[str, Rect]:
        """计算单页全部元素的最终矩形"""
        record = record or {}
        table = WorkingRectTable(elements)

        # 隐藏元素不参与推动
        participants = [el for el in elements if el.visible]
        drivers = sorted(
            (el for el in participants if el.is_driver),
            key=lambda el: el.position.y,
        )

        for driver in drivers:
            required = self._required_height(driver, dataset, record, page_index)
            current = table[driver.id]
            delta = required - current.height
            if abs(delta) < HEIGHT_TOLERANCE:
                continue

            resized = current.resized(required)
            table[driver.id] = resized
            moved = self._propagate(driver, delta, resized, participants, table)
            logger.debug(
                f"驱动表格 {driver.id} 高度 {current.height:.1f} -> {required:.1f}, "
                f"位移 {delta:+.1f}, 受影响元素 {moved}"
            )

        return table.snapshot()

    def apply(
        self,
        elements: list[Element],
        dataset: DataSet,
        record: dict[str, str] | None = None,
        page_index: int | None = None,
    ) -> list[Element]:
        """返回落位到最终矩形的元素副本"""
        rects = self.compute(elements, dataset, record, page_index)
        return [el.at(rects[el.id]) for el in elements]

    def _required_height(
        self,
        driver: Element,
        dataset: DataSet,
        record: dict[str, str],
        page_index: int | None,
    ) -> float:
        settings = driver.table_settings
        group_value = None
        if settings is not None and settings.group_by_field:
            group_value = record.get(settings.group_by_field)

        try:
            return float(self.height_fn(driver, dataset, group_value, record))
        except LayoutError as e:
            e.page_index = page_index
            e.element_id = e.element_id or driver.id
            raise
        except Exception as e:
            raise LayoutError(
                f"表格高度计算失败: {driver.id}: {e}",
                page_index=page_index,
                element_id=driver.id,
            ) from e

    @staticmethod
    def _propagate(
        driver: Element,
        delta: float,
        driver_rect: Rect,
        participants: list[Element],
        table: WorkingRectTable,
    ) -> int:
        """一次位移波（广度优先、传递传播）"""
        processed = {driver.id}
        queue: deque[tuple[str, float, Rect]] = deque([(driver.id, delta, driver_rect)])

        while queue:
            _, dy, pusher = queue.popleft()
            for el in participants:
                if el.id in processed or el.locked:
                    continue
                rect = table[el.id]
                if rect.overlaps_horizontally(pusher) and rect.y > pusher.y:
                    shifted = rect.shifted(dy)
                    table[el.id] = shifted
                    processed.add(el.id)
                    queue.append((el.id, dy, shifted))

        return len(processed) - 1
