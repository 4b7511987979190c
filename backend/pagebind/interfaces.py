"""
模块接口契约 - 定义各模块的抽象接口

设计原则：
1. 模块间通过接口通信，不直接依赖具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from pagebind.interfaces import IBlobStore

    class MemoryBlobStore(IBlobStore):
        def save(self, key: str, content: str, content_type: str = "text/html") -> str:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .models import DataSet, Element, ExportJob, JobStatus


USER_FACING_ERROR = "Export failed. Please try again."


# ============================================================================
# 重排模块接口
# ============================================================================

class IHeightFunction(Protocol):
    """表格高度计算协议（纯函数：表格配置 + 数据集 + 分组值 + 当前记录 → 高度）"""

    def __call__(
        self,
        table: Element,
        dataset: DataSet,
        group_value: str | None,
        record: dict[str, str] | None = None,
    ) -> float:
        ...


# ============================================================================
# 导出任务模块接口
# ============================================================================

class IBlobStore(ABC):
    """分块存储接口 - 持久化可独立寻址的标记块"""

    @abstractmethod
    def save(self, key: str, content: str, content_type: str = "text/html") -> str:
        """
        保存内容

        Args:
            key: 存储路径（如 inputs/<job_id>_part0.html）
            content: 标记内容
            content_type: MIME类型

        Returns:
            可寻址的引用（worker 用它读取内容）
        """
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """判断引用是否存在"""
        ...


class IRenderWorker(ABC):
    """渲染 worker 接口 - 进程外生成最终二进制产物"""

    @abstractmethod
    def submit(self, job_id: str, payload: dict[str, Any]) -> None:
        """
        提交任务

        Args:
            job_id: 任务ID
            payload: 单文档引用或有序分块引用列表，以及渲染参数

        Raises:
            SubmissionError: 派发失败或超时
        """
        ...


class IJobStore(ABC):
    """任务存储接口"""

    @abstractmethod
    def create_job(self, job_type: str, user_id: str, **kwargs: Any) -> ExportJob:
        """创建任务（pending）"""
        ...

    @abstractmethod
    def get_job(self, job_id: str, refresh: bool = False) -> ExportJob | None:
        """获取任务"""
        ...

    @abstractmethod
    def update_job(self, job: ExportJob) -> None:
        """更新任务"""
        ...

    @abstractmethod
    def apply_worker_update(
        self,
        job_id: str,
        status: JobStatus,
        progress: int | None = None,
        result_location: str | None = None,
        error: str | None = None,
    ) -> ExportJob:
        """worker 回写任务状态"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class PagebindError(Exception):
    """基础异常"""

    user_message = USER_FACING_ERROR


class TemplateError(PagebindError):
    """设计文档错误"""
    pass


class DatasetError(PagebindError):
    """数据集读取错误"""
    pass


class LayoutError(PagebindError):
    """重排错误（高度计算失败/表格配置异常）"""

    def __init__(self, message: str, page_index: int | None = None, element_id: str | None = None):
        super().__init__(message)
        self.page_index = page_index
        self.element_id = element_id


class RenderError(PagebindError):
    """单页渲染错误"""

    def __init__(self, message: str, page_index: int | None = None):
        super().__init__(message)
        self.page_index = page_index


class SubmissionError(PagebindError):
    """分块持久化或派发失败"""

    def __init__(self, message: str, job_id: str | None = None):
        super().__init__(message)
        self.job_id = job_id


class TransportError(PagebindError):
    """单次状态读取失败（不影响任务状态）"""
    pass


class InvalidTransition(PagebindError):
    """非法的任务状态迁移"""
    pass


class WorkerFailure(PagebindError):
    """任务在 worker 侧失败"""

    def __init__(self, job_id: str, worker_error: str | None = None):
        super().__init__(f"任务失败: {job_id}: {worker_error or '未知错误'}")
        self.job_id = job_id
        self.worker_error = worker_error


class PollTimeout(PagebindError):
    """轮询超出上限"""

    def __init__(self, job_id: str, attempts: int):
        super().__init__(f"轮询超时: {job_id} (已尝试 {attempts} 次)")
        self.job_id = job_id
        self.attempts = attempts


class JobCancelled(PagebindError):
    """调用方取消了轮询"""

    user_message = "Export cancelled."

    def __init__(self, job_id: str):
        super().__init__(f"轮询已取消: {job_id}")
        self.job_id = job_id
