"""
分块 - 大目录按固定页数切分并并发持久化

职责：
1. 按 chunk_size 顺序切分页面（最后一块可不足）
2. 并发上传各块标记，单块失败按退避重试，整批受 upload_sec 限时
3. 结果按块序号排列，与上传完成顺序无关

测试要点：
- test_split_23_pages: 23页/每块5页 → 5块（4×5 + 1×3）
- test_upload_order_by_index: 乱序完成仍按序号返回
- test_upload_retry: 单块重试后成功
- test_upload_exhausted: 重试耗尽抛出 SubmissionError
- test_upload_timeout: 超过 upload_sec 抛出 SubmissionError
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import TYPE_CHECKING, Callable, Sequence, TypeVar

from ..config import get_config
from ..interfaces import SubmissionError
from ..models import JobChunk

if TYPE_CHECKING:
    from ..config import RuntimeConfig
    from ..interfaces import IBlobStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def split_into_chunks(items: Sequence[T], chunk_size: int) -> list[list[T]]:
    """顺序切分"""
    if chunk_size < 1:
        raise ValueError(f"chunk_size 必须 >= 1: {chunk_size}")
    return [list(items[i:i + chunk_size]) for i in range(0, len(items), chunk_size)]


def chunk_key(job_id: str, index: int) -> str:
    return f"inputs/{job_id}_part{index}.html"


def document_key(job_id: str) -> str:
    return f"inputs/{job_id}.html"


class ChunkUploader:
    """分块上传器"""

    def __init__(
        self,
        blob_store: IBlobStore,
        config: RuntimeConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.blob_store = blob_store
        self.config = config or get_config()
        self._sleep = sleep

    def upload(self, job_id: str, markups: list[str], page_ranges: list[tuple[int, int]]) -> list[JobChunk]:
        """并发上传全部分块，返回按序号排列的分块引用"""
        chunks = [
            JobChunk(index=i, page_start=start, page_end=end, key=chunk_key(job_id, i))
            for i, (start, end) in enumerate(page_ranges)
        ]
        references = self._save_all([(chunk.key, markup) for chunk, markup in zip(chunks, markups)])
        for chunk, reference in zip(chunks, references):
            chunk.reference = reference

        logger.info(f"[{job_id}] 已上传 {len(chunks)} 个分块")
        return chunks

    def upload_document(self, job_id: str, markup: str) -> str:
        """上传单文档"""
        return self._save_all([(document_key(job_id), markup)])[0]

    def _save_all(self, items: list[tuple[str, str]]) -> list[str]:
        """
        并发保存，整批受 timeouts.upload_sec 限制（含重试）

        Raises:
            SubmissionError: 重试耗尽或超时
        """
        timeout = self.config.timeouts.upload_sec
        max_workers = max(1, min(self.config.concurrency.max_workers, len(items) or 1))
        pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="chunk-upload")
        deadline = time.monotonic() + timeout
        try:
            futures = [pool.submit(self._save_with_retry, key, markup) for key, markup in items]
            references = []
            # 按提交顺序（即块序号）收集结果
            for (key, _), future in zip(items, futures):
                try:
                    references.append(future.result(timeout=max(0.0, deadline - time.monotonic())))
                except FuturesTimeoutError as e:
                    raise SubmissionError(f"上传超时 ({timeout}s): {key}") from e
            return references
        finally:
            # 超时后不等待卡住的线程
            pool.shutdown(wait=False, cancel_futures=True)

    def _save_with_retry(self, key: str, markup: str) -> str:
        retries = self.config.retries.max_retries
        backoff = self.config.retries.retry_backoff_ms / 1000

        last_error: Exception | None = None
        for attempt in range(retries + 1):
            try:
                return self.blob_store.save(key, markup, content_type="text/html")
            except (SubmissionError, OSError) as e:
                last_error = e
                logger.warning(f"分块上传失败 {key} (第{attempt + 1}次): {e}")
                if attempt < retries:
                    self._sleep(backoff * (2 ** attempt))

        raise SubmissionError(f"分块上传失败: {key}: {last_error}")
