"""
任务轮询 - 等待任务进入终态

职责：
1. 按间隔读取任务状态，间隔按退避系数增长（不超过上限）
2. 限制最大读取次数，超出抛出 PollTimeout
3. 取消令牌在读取后、等待前和返回结果前检查，取消后不会返回过期结果
4. 单次读取失败（TransportError）计为该次失败，继续下一次

测试要点：
- test_poll_until_completed: pending→processing→completed 恰好读取到终态
- test_poll_failed: failed 抛出 WorkerFailure（带 worker 错误）
- test_poll_transport_error: 读取失败后继续
- test_poll_timeout: 超出次数
- test_poll_cancelled: 取消后不返回结果
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from ..config import get_config
from ..interfaces import JobCancelled, PollTimeout, TransportError, WorkerFailure
from ..models import ExportResult, JobStatus

if TYPE_CHECKING:
    from ..config import RuntimeConfig
    from ..interfaces import IJobStore
    from ..models import ExportJob

logger = logging.getLogger(__name__)


class CancelToken:
    """取消令牌（由调用方持有并传入轮询循环）"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """等待至超时或被取消；返回是否已取消"""
        return self._event.wait(timeout)


class JobPoller:
    """任务轮询器"""

    def __init__(self, job_store: IJobStore, config: RuntimeConfig | None = None):
        self.job_store = job_store
        self.config = config or get_config()

    def poll_once(self, job_id: str) -> ExportJob:
        """
        读取一次任务状态

        Raises:
            TransportError: 本次读取失败（任务状态不受影响）
            WorkerFailure: 任务不存在
        """
        job = self.job_store.get_job(job_id, refresh=True)
        if job is None:
            raise WorkerFailure(job_id, "Job not found")
        return job

    def poll_until_done(self, job_id: str, cancel_token: CancelToken | None = None) -> ExportResult:
        """轮询直到终态"""
        token = cancel_token or CancelToken()
        polling = self.config.polling
        interval = polling.interval_sec
        attempts = 0

        while attempts < polling.max_attempts:
            if token.cancelled:
                raise JobCancelled(job_id)

            attempts += 1
            try:
                job = self.poll_once(job_id)
            except TransportError as e:
                logger.warning(f"[{job_id}] 第{attempts}次状态读取失败: {e}")
                job = None

            if token.cancelled:
                raise JobCancelled(job_id)

            if job is not None:
                if job.status == JobStatus.COMPLETED:
                    logger.info(f"[{job_id}] 任务完成: {job.result_location}")
                    return ExportResult(
                        job_id=job.id,
                        result_location=job.result_location or "",
                        file_name=job.suggested_filename,
                    )
                if job.status == JobStatus.FAILED:
                    logger.error(f"[{job_id}] 任务失败: {job.error}")
                    raise WorkerFailure(job_id, job.error)

            if attempts >= polling.max_attempts:
                break
            if token.wait(interval):
                raise JobCancelled(job_id)
            interval = min(interval * polling.backoff_factor, polling.max_interval_sec)

        raise PollTimeout(job_id, attempts)
