"""
派发队列 - 至少一次投递、按任务ID幂等

职责：
1. 任务入队后由后台线程派发给 worker（调用方不阻塞）
2. 派发失败（含 worker 抛出的任意异常）按退避重试；耗尽后任务标记 failed（"Worker timed out"），不会卡在 pending
3. 同一任务ID重复入队不会重复派发；已进入终态的任务不再派发

测试要点：
- test_dispatch_success: 派发成功
- test_dispatch_idempotent: 重复入队只派发一次
- test_dispatch_exhausted: 重试耗尽 → failed
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable

from ..config import get_config
from ..interfaces import InvalidTransition, SubmissionError, TransportError
from ..models import JobStatus

if TYPE_CHECKING:
    from ..config import RuntimeConfig
    from ..interfaces import IJobStore, IRenderWorker

logger = logging.getLogger(__name__)

DISPATCH_TIMEOUT_ERROR = "Worker timed out"


class DispatchQueue:
    """worker 派发队列"""

    def __init__(
        self,
        worker: IRenderWorker,
        job_store: IJobStore,
        config: RuntimeConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.worker = worker
        self.job_store = job_store
        self.config = config or get_config()
        self._sleep = sleep
        self._pool = ThreadPoolExecutor(
            max_workers=max(1, self.config.concurrency.max_jobs),
            thread_name_prefix="dispatch",
        )
        self._lock = threading.Lock()
        self._pending: dict[str, Future] = {}
        self._dispatched: set[str] = set()

    def enqueue(self, job_id: str, payload: dict[str, Any]) -> Future:
        """入队（同一任务ID在处理中或已派发时返回已有的 Future）"""
        with self._lock:
            existing = self._pending.get(job_id)
            if existing is not None and (not existing.done() or job_id in self._dispatched):
                logger.debug(f"[{job_id}] 已在派发队列中，忽略重复入队")
                return existing
            future = self._pool.submit(self._handle, job_id, payload)
            self._pending[job_id] = future
        return future

    def is_dispatched(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._dispatched

    def drain(self, timeout: float | None = None) -> None:
        """等待当前队列中的派发全部结束"""
        with self._lock:
            futures = list(self._pending.values())
        for future in futures:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def _handle(self, job_id: str, payload: dict[str, Any]) -> bool:
        """派发处理（幂等）：返回是否已成功派发"""
        with self._lock:
            if job_id in self._dispatched:
                return True

        try:
            job = self.job_store.get_job(job_id)
        except TransportError:
            # 读不到任务记录时仍尝试派发，失败后按耗尽处理
            logger.exception(f"[{job_id}] 派发前读取任务失败")
            job = None
        else:
            if job is None or job.is_terminal:
                logger.info(f"[{job_id}] 任务不存在或已结束，跳过派发")
                return False

        retries = self.config.retries.max_retries
        backoff = self.config.retries.retry_backoff_ms / 1000
        for attempt in range(retries + 1):
            try:
                self.worker.submit(job_id, payload)
            except SubmissionError as e:
                logger.warning(f"[{job_id}] 派发失败 (第{attempt + 1}次): {e}")
            except Exception:
                # 超时、连接断开等任意 worker 异常同样计入重试
                logger.exception(f"[{job_id}] 派发异常 (第{attempt + 1}次)")
            else:
                with self._lock:
                    self._dispatched.add(job_id)
                return True

            if attempt < retries:
                self._sleep(backoff * (2 ** attempt))

        logger.error(f"[{job_id}] 派发重试耗尽，标记失败")
        self._mark_failed(job_id)
        return False

    def _mark_failed(self, job_id: str) -> None:
        try:
            self.job_store.apply_worker_update(job_id, JobStatus.FAILED, error=DISPATCH_TIMEOUT_ERROR)
        except InvalidTransition:
            # worker 可能已在超时前回写了终态
            logger.info(f"[{job_id}] 任务已结束，保留 worker 回写的状态")
        except (KeyError, TransportError, OSError):
            logger.exception(f"[{job_id}] 无法标记派发失败")
