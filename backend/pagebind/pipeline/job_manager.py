"""
任务管理器 - 导出任务创建/查询/更新/回写

职责：
1. 创建任务并分配ID（同一请求键只对应一个任务）
2. 任务状态持久化（storage/jobs/<id>/job.json）
3. worker 回写时校验状态机（终态不可再变，重复回写幂等）
4. 任务历史查询
5. 请求键预留（storage/requests/<sha256>.json，跨实例/重启可见）

请求键预留流程：
    job_id, created = manager.reserve_request("req-1")
    if created:
        ...构建页面...
        manager.create_job(..., job_id=job_id, request_id="req-1")  # 失败时 release_request
    同一进程内的并发调用在首个构建结束前等待，之后返回同一任务ID

测试要点：
- test_create_job: 创建任务
- test_get_job_refresh: 从磁盘重新读取 worker 回写
- test_apply_worker_update: 状态机校验
- test_terminal_is_final: 终态不可再变
- test_list_jobs: 历史按时间倒序
- test_reserve_concurrent: 并发预留只有一个成功
- test_find_by_request_new_instance: 新实例按请求键找到已有任务
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ..config import get_config
from ..interfaces import IJobStore, InvalidTransition, TransportError
from ..models import ExportJob, JobStatus, JobType

if TYPE_CHECKING:
    from ..config import RuntimeConfig

logger = logging.getLogger(__name__)


class JobManager(IJobStore):
    """任务管理器实现（文件系统持久化）"""

    def __init__(self, config: RuntimeConfig | None = None):
        self.config = config or get_config()
        self._jobs: dict[str, ExportJob] = {}  # 内存缓存
        self._requests: dict[str, str] = {}    # request_id → job_id
        self._building: dict[str, threading.Event] = {}  # 已预留、任务尚未创建
        self._lock = threading.RLock()

    def create_job(self, job_type: str, user_id: str, job_id: str | None = None, **kwargs: Any) -> ExportJob:
        """
        创建任务（pending）

        Args:
            job_id: 预留时分配的任务ID（缺省新生成）
        """
        job = ExportJob(
            id=job_id or str(uuid.uuid4()),
            user_id=user_id,
            type=JobType(job_type),
            **kwargs,
        )
        with self._lock:
            self._jobs[job.id] = job
            self._persist_job(job)
            if job.request_id:
                self._bind_request(job.request_id, job.id)
        logger.info(f"[{job.id}] 创建任务 {job.type.value} (用户 {user_id})")
        return job

    def reserve_request(self, request_id: str) -> tuple[str, bool]:
        """
        预留请求键

        Returns:
            (job_id, created)：created=False 表示该请求键已对应任务，直接返回其ID

        Raises:
            TransportError: 请求标记读取失败
        """
        while True:
            with self._lock:
                building = self._building.get(request_id)
                if building is None:
                    job_id = self._requests.get(request_id) or self._read_request_marker(request_id)
                    if job_id:
                        self._requests[request_id] = job_id
                        return job_id, False

                    job_id = str(uuid.uuid4())
                    if self._claim_request_marker(request_id, job_id):
                        self._requests[request_id] = job_id
                        self._building[request_id] = threading.Event()
                        logger.debug(f"请求 {request_id} 预留任务ID {job_id}")
                        return job_id, True
                    # 其他实例刚写入标记，重新读取
                    continue
            building.wait()

    def release_request(self, request_id: str, job_id: str) -> None:
        """释放预留（任务未创建时删除标记，等待者重新竞争）"""
        with self._lock:
            if job_id not in self._jobs and self._requests.get(request_id) == job_id:
                del self._requests[request_id]
                if self._read_request_marker(request_id) == job_id:
                    self._request_marker(request_id).unlink(missing_ok=True)
                logger.info(f"请求 {request_id} 构建失败，已释放预留")
            building = self._building.pop(request_id, None)
        if building is not None:
            building.set()

    def find_by_request(self, request_id: str) -> ExportJob | None:
        """按请求键查找任务（内存未命中时读磁盘标记）"""
        with self._lock:
            job_id = self._requests.get(request_id) or self._read_request_marker(request_id)
        return self.get_job(job_id) if job_id else None

    def get_job(self, job_id: str, refresh: bool = False) -> ExportJob | None:
        """
        获取任务

        Args:
            refresh: 忽略缓存，从磁盘读取（读取 worker 回写的最新状态）

        Raises:
            TransportError: 读取失败（不影响任务状态，下次读取可能成功）
        """
        with self._lock:
            if not refresh and job_id in self._jobs:
                return self._jobs[job_id]

        job = self._load_job(job_id)
        if job:
            with self._lock:
                self._jobs[job_id] = job
        return job

    def update_job(self, job: ExportJob) -> None:
        """更新任务"""
        job.touch()
        with self._lock:
            self._jobs[job.id] = job
            self._persist_job(job)

    def apply_worker_update(
        self,
        job_id: str,
        status: JobStatus,
        progress: int | None = None,
        result_location: str | None = None,
        error: str | None = None,
    ) -> ExportJob:
        """worker 回写（校验状态机）"""
        status = JobStatus(status)
        with self._lock:
            job = self.get_job(job_id, refresh=True)
            if job is None:
                raise KeyError(f"任务不存在: {job_id}")

            if status == job.status:
                # 重复回写：仅处理中允许刷新进度
                if status == JobStatus.PROCESSING and progress is not None:
                    job.progress = max(job.progress, progress)
                    self.update_job(job)
                return job

            if not job.can_transition(status):
                raise InvalidTransition(
                    f"非法状态迁移: {job_id}: {job.status.value} → {status.value}"
                )

            if status == JobStatus.PROCESSING:
                job.mark_processing(progress)
            elif status == JobStatus.COMPLETED:
                if not result_location:
                    raise InvalidTransition(f"完成状态缺少结果引用: {job_id}")
                job.mark_completed(result_location)
            elif status == JobStatus.FAILED:
                job.mark_failed(error or "Unknown error")

            self.update_job(job)
        logger.info(f"[{job_id}] 状态更新: {status.value}")
        return job

    def list_jobs(
        self,
        user_id: str | None = None,
        status: JobStatus | None = None,
        limit: int = 100,
    ) -> list[ExportJob]:
        """列出任务（按创建时间降序）"""
        jobs_dir = self.config.storage_dir / "jobs"
        if jobs_dir.exists():
            for job_dir in jobs_dir.iterdir():
                if job_dir.is_dir() and job_dir.name not in self._jobs:
                    try:
                        self.get_job(job_dir.name)
                    except TransportError as e:
                        logger.warning(f"跳过无法读取的任务记录: {job_dir.name}: {e}")

        with self._lock:
            jobs = list(self._jobs.values())

        if user_id:
            jobs = [j for j in jobs if j.user_id == user_id]
        if status:
            jobs = [j for j in jobs if j.status == status]

        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    def _persist_job(self, job: ExportJob) -> None:
        """持久化任务（先写临时文件再替换，避免读到半写内容）"""
        job_dir = self.config.get_job_dir(job.id)
        job_dir.mkdir(parents=True, exist_ok=True)

        job_file = job_dir / "job.json"
        tmp_file = job_dir / "job.json.tmp"
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(job.model_dump(mode="json"), f, ensure_ascii=False, indent=2, default=str)
        tmp_file.replace(job_file)

    def _load_job(self, job_id: str) -> ExportJob | None:
        """从磁盘加载任务"""
        job_file = self.config.get_job_dir(job_id) / "job.json"

        if not job_file.exists():
            return None

        try:
            with open(job_file, encoding="utf-8") as f:
                data = json.load(f)
            return ExportJob(**data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise TransportError(f"任务记录读取失败: {job_id}: {e}") from e

    # ------------------------------------------------------------------
    # 请求键标记
    # ------------------------------------------------------------------

    def _bind_request(self, request_id: str, job_id: str) -> None:
        """绑定请求键（已对应其他任务时保留原映射）"""
        owner = self._requests.get(request_id) or self._read_request_marker(request_id)
        if owner is None:
            owner = job_id if self._claim_request_marker(request_id, job_id) else self._read_request_marker(request_id)
        if owner != job_id:
            logger.warning(f"请求 {request_id} 已对应任务 {owner}，不覆盖为 {job_id}")
        self._requests[request_id] = owner or job_id

        building = self._building.pop(request_id, None)
        if building is not None:
            building.set()

    def _request_marker(self, request_id: str) -> Path:
        digest = hashlib.sha256(request_id.encode("utf-8")).hexdigest()
        return self.config.storage_dir / "requests" / f"{digest}.json"

    def _claim_request_marker(self, request_id: str, job_id: str) -> bool:
        """原子创建请求标记（硬链接已存在即失败，内容总是完整的）"""
        marker = self._request_marker(request_id)
        marker.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = marker.with_name(f"{marker.name}.{job_id}.tmp")
        tmp_file.write_text(json.dumps({"request_id": request_id, "job_id": job_id}), encoding="utf-8")
        try:
            os.link(tmp_file, marker)
        except FileExistsError:
            return False
        finally:
            tmp_file.unlink(missing_ok=True)
        return True

    def _read_request_marker(self, request_id: str) -> str | None:
        marker = self._request_marker(request_id)
        if not marker.exists():
            return None
        try:
            return json.loads(marker.read_text(encoding="utf-8"))["job_id"]
        except (OSError, json.JSONDecodeError, KeyError) as e:
            raise TransportError(f"请求标记读取失败: {request_id}: {e}") from e
