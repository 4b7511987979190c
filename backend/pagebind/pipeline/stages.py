"""
流水线阶段定义

职责：
1. 定义导出提交各阶段的名称与进度区间
2. 提供进度回调钩子（构建期进度，worker 进度由 worker 回写）

测试要点：
- test_stage_ranges: 阶段进度区间连续覆盖 0-100
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

ProgressCallback = Callable[[str, int, str], None]


class StageEnum(str, Enum):
    """导出阶段枚举"""
    PLAN = "PLAN"
    REFLOW_RENDER = "REFLOW_RENDER"
    PACKAGE = "PACKAGE"
    UPLOAD = "UPLOAD"
    DISPATCH = "DISPATCH"


@dataclass
class PipelineStage:
    """流水线阶段"""
    name: str
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点

    def percent_at(self, done: int, total: int) -> int:
        """阶段内进度 → 总进度"""
        if total <= 0:
            return self.progress_end
        span = self.progress_end - self.progress_start
        return self.progress_start + int(span * min(done, total) / total)


EXPORT_STAGES: dict[StageEnum, PipelineStage] = {
    StageEnum.PLAN: PipelineStage(StageEnum.PLAN.value, 0, 10),
    StageEnum.REFLOW_RENDER: PipelineStage(StageEnum.REFLOW_RENDER.value, 10, 70),
    StageEnum.PACKAGE: PipelineStage(StageEnum.PACKAGE.value, 70, 80),
    StageEnum.UPLOAD: PipelineStage(StageEnum.UPLOAD.value, 80, 95),
    StageEnum.DISPATCH: PipelineStage(StageEnum.DISPATCH.value, 95, 100),
}


def report(cb: ProgressCallback | None, stage: StageEnum, done: int = 1, total: int = 1, message: str = "") -> None:
    """调用进度回调（未设置时忽略）"""
    if cb is not None:
        cb(stage.value, EXPORT_STAGES[stage].percent_at(done, total), message)
