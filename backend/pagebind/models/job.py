"""
导出任务模型 - 定义任务状态与生命周期

状态机：pending → processing → completed | failed
（派发失败时 pending 可直接进入 failed；终态不可再变）
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """任务状态枚举"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class JobType(str, Enum):
    """任务类型"""
    PDF_SINGLE = "pdf_single"     # 单份规格书（可多页）
    PDF_CATALOG = "pdf_catalog"   # 完整产品目录
    PDF_BULK = "pdf_bulk"         # 批量导出（每行一份文档，worker 打包为 ZIP）


class ExportMode(str, Enum):
    """输出模式"""
    DIGITAL = "digital"   # 屏幕阅读：图片压缩
    PRINT = "print"       # 印刷：图片原样、CMYK


class ExportOptions(BaseModel):
    """导出选项（调用方传入）"""
    user_id: str = "anonymous"
    project_name: str | None = None
    file_name: str | None = None
    filename_pattern: str = ""
    mode: ExportMode = ExportMode.DIGITAL
    licensed: bool = False

    # 同一逻辑请求只创建一个任务
    request_id: str | None = None

    # 画布（为空时取运行期配置）
    canvas_width: float | None = None
    canvas_height: float | None = None

    # 单份导出
    page_count: int = 1
    background_color: str = "#ffffff"

    # 目录导出
    group_by_field: str | None = None
    title_field: str | None = None


class JobChunk(BaseModel):
    """分块（大目录的一段页面标记，或批量导出中的一份文档）"""
    index: int
    page_start: int
    page_end: int
    key: str
    reference: str | None = None
    file_name: str | None = None  # 批量导出时该文档的输出文件名


class ExportJob(BaseModel):
    """导出任务实体"""
    id: str = Field(..., description="UUID")
    user_id: str
    type: JobType
    status: JobStatus = JobStatus.PENDING
    progress: int = 0

    result_location: str | None = None
    error: str | None = None

    file_name: str | None = None
    display_filename: str | None = None
    project_name: str | None = None

    # 构建期附加信息
    request_id: str | None = None
    page_count: int = 0
    chunks: list[JobChunk] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list, description="告警标记")
    payload: dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def suggested_filename(self) -> str:
        return self.display_filename or self.file_name or "Export"

    def can_transition(self, status: JobStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]

    def touch(self) -> None:
        self.updated_at = datetime.now()

    def mark_processing(self, progress: int | None = None) -> None:
        """标记为处理中"""
        self.status = JobStatus.PROCESSING
        if progress is not None:
            self.progress = progress
        self.touch()

    def mark_completed(self, result_location: str) -> None:
        """标记为完成"""
        self.status = JobStatus.COMPLETED
        self.result_location = result_location
        self.progress = 100
        self.touch()

    def mark_failed(self, error: str) -> None:
        """标记为失败"""
        self.status = JobStatus.FAILED
        self.error = error
        self.touch()

    def add_flag(self, flag: str) -> None:
        """添加告警标记（不中断）"""
        if flag not in self.flags:
            self.flags.append(flag)


class ExportResult(BaseModel):
    """轮询成功的结果"""
    job_id: str
    result_location: str
    file_name: str
