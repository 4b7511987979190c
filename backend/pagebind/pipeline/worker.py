"""
渲染 worker 客户端 - POST {worker_url}/process-job

请求体：{"jobId": <id>, "data": <payload>}
worker 负责生成最终产物并回写任务状态；这里只负责在限定超时内完成派发。

依赖：
- httpx: HTTP 客户端
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import get_config
from ..interfaces import IRenderWorker, SubmissionError

logger = logging.getLogger(__name__)


class HttpRenderWorker(IRenderWorker):
    """HTTP 渲染 worker"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        config = get_config()
        self.base_url = (base_url or config.export.worker_url).rstrip("/")
        self.timeout = timeout if timeout is not None else config.timeouts.dispatch_sec
        self._client = client or httpx.Client(timeout=self.timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/process-job"

    def submit(self, job_id: str, payload: dict[str, Any]) -> None:
        try:
            response = self._client.post(
                self.endpoint,
                json={"jobId": job_id, "data": payload},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SubmissionError(f"派发失败: {e}", job_id=job_id) from e
        logger.info(f"[{job_id}] 已派发至 {self.endpoint}")

    def close(self) -> None:
        self._client.close()
