"""
流水线层 - 页面组装与导出任务

子模块：
- assembler: 规划 → 重排 → 渲染（失败页以占位页替代）
- packager: 完整HTML包装与 manifest
- chunking / storage: 分块切分、并发持久化
- worker / dispatch: worker 派发（至少一次、幂等）
- job_manager / poller: 任务存储与轮询
- client: 对外提交/轮询入口
"""

from .assembler import DocumentAssembler
from .chunking import ChunkUploader, chunk_key, document_key, split_into_chunks
from .client import ExportClient
from .dispatch import DISPATCH_TIMEOUT_ERROR, DispatchQueue
from .job_manager import JobManager
from .packager import MarkupPackager
from .poller import CancelToken, JobPoller
from .stages import EXPORT_STAGES, PipelineStage, StageEnum
from .storage import LocalBlobStore
from .worker import HttpRenderWorker

__all__ = [
    "DocumentAssembler",
    "MarkupPackager",
    "ChunkUploader",
    "split_into_chunks",
    "chunk_key",
    "document_key",
    "LocalBlobStore",
    "HttpRenderWorker",
    "DispatchQueue",
    "DISPATCH_TIMEOUT_ERROR",
    "JobManager",
    "JobPoller",
    "CancelToken",
    "ExportClient",
    "StageEnum",
    "PipelineStage",
    "EXPORT_STAGES",
]
