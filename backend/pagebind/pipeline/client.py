"""
导出任务客户端 - 对外的提交/轮询入口

职责：
1. submit_single / submit_catalog / submit_bulk: 构建页面 → 创建任务 → 持久化标记 → 入队派发
2. poll_until_done: 轮询任务直到终态
3. 同一请求键只创建一个任务（构建前预留，跨实例可见）；任务创建后的任何失败都会把任务标记为 failed
4. 空数据集的目录/批量导出在创建任务前拒绝

使用方式：
    client = ExportClient()
    job_id = client.submit_catalog(sections, dataset, ExportOptions(user_id="u1"))
    result = client.poll_until_done(job_id)

测试要点：
- test_submit_single: 单文档引用
- test_submit_catalog_chunked: 大目录分块引用有序
- test_request_id_idempotent: 同一请求键返回同一任务
- test_concurrent_same_request: 并发提交只构建/派发一次
- test_empty_dataset_rejected: 空数据集不创建任务
- test_submit_bulk: 每行一份文档，文件名按行生成
- test_upload_failure_marks_failed: 任务创建后失败 → failed + SubmissionError
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from ..config import get_config
from ..interfaces import DatasetError, SubmissionError
from ..models import BuildReport, DataSet, JobChunk, JobStatus, JobType
from ..tokens import build_filename
from .assembler import DocumentAssembler
from .chunking import ChunkUploader, split_into_chunks
from .dispatch import DispatchQueue
from .job_manager import JobManager
from .packager import MarkupPackager
from .poller import CancelToken, JobPoller
from .stages import ProgressCallback, StageEnum, report
from .storage import LocalBlobStore
from .worker import HttpRenderWorker

if TYPE_CHECKING:
    from ..config import RuntimeConfig
    from ..interfaces import IBlobStore, IRenderWorker
    from ..models import CatalogSections, Element, ExportJob, ExportOptions, ExportResult

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_FILENAME = "catalog.pdf"

T = TypeVar("T")


def unique_filenames(names: list[str]) -> list[str]:
    """重名追加 _1、_2 …（保持顺序）"""
    used: set[str] = set()
    result = []
    for name in names:
        candidate, counter = name, 1
        while candidate in used:
            candidate = f"{name}_{counter}"
            counter += 1
        used.add(candidate)
        result.append(candidate)
    return result


class ExportClient:
    """导出任务客户端"""

    def __init__(
        self,
        job_store: JobManager | None = None,
        blob_store: IBlobStore | None = None,
        worker: IRenderWorker | None = None,
        assembler: DocumentAssembler | None = None,
        config: RuntimeConfig | None = None,
        progress_cb: ProgressCallback | None = None,
    ):
        self.config = config or get_config()
        self.job_store = job_store or JobManager(self.config)
        self.blob_store = blob_store or LocalBlobStore(config=self.config)
        self.worker = worker or HttpRenderWorker()
        self.assembler = assembler or DocumentAssembler(config=self.config)
        self.packager = MarkupPackager(self.config)
        self.uploader = ChunkUploader(self.blob_store, self.config)
        self.dispatcher = DispatchQueue(self.worker, self.job_store, self.config)
        self.poller = JobPoller(self.job_store, self.config)
        self.progress_cb = progress_cb

    # ------------------------------------------------------------------
    # 提交
    # ------------------------------------------------------------------

    def submit_single(
        self,
        elements: list[Element],
        record: dict[str, str],
        options: ExportOptions,
        dataset: DataSet | None = None,
    ) -> str:
        """单份导出（渲染所有设计页）"""
        dataset = dataset or DataSet(headers=list(record), rows=[record] if record else [])

        def build() -> BuildReport:
            return self.assembler.build_single(elements, dataset, record, options, self.progress_cb)

        return self._run(JobType.PDF_SINGLE, build, options, record)

    def submit_catalog(self, sections: CatalogSections, dataset: DataSet, options: ExportOptions) -> str:
        """
        目录导出

        Raises:
            DatasetError: 数据集为空（不创建任务）
        """
        if dataset.is_empty:
            raise DatasetError("数据集为空，无法生成目录")

        def build() -> BuildReport:
            result, _ = self.assembler.build_catalog(sections, dataset, options, self.progress_cb)
            return result

        return self._run(JobType.PDF_CATALOG, build, options, dataset.row(0))

    def submit_bulk(self, elements: list[Element], dataset: DataSet, options: ExportOptions) -> str:
        """
        批量导出：每行数据一份文档，worker 按 items 顺序打包

        文件名按 filename_pattern 逐行生成，重名追加序号

        Raises:
            DatasetError: 数据集为空（不创建任务）
        """
        if dataset.is_empty:
            raise DatasetError("数据集为空，无法批量导出")

        def build() -> list[BuildReport]:
            total = len(dataset)
            builds = []
            for i, row in enumerate(dataset.rows):
                builds.append(self.assembler.build_single(elements, dataset, row, options))
                report(self.progress_cb, StageEnum.REFLOW_RENDER, i + 1, total, f"第 {i + 1}/{total} 份")
            return builds

        return self._run(JobType.PDF_BULK, build, options, {}, rows=dataset.rows)

    def _run(
        self,
        job_type: JobType,
        build_fn: Callable[[], T],
        options: ExportOptions,
        record: dict[str, str],
        rows: list[dict[str, str]] | None = None,
    ) -> str:
        """预留请求键 → 构建 → 创建任务 → 提交（构建或创建失败时释放预留）"""
        job_id: str | None = None
        if options.request_id:
            job_id, created = self.job_store.reserve_request(options.request_id)
            if not created:
                logger.info(f"请求 {options.request_id} 已对应任务 {job_id}，不重复提交")
                return job_id

        try:
            built = build_fn()
            builds = built if isinstance(built, list) else [built]
            if sum(b.page_count for b in builds) == 0:
                raise DatasetError("没有可导出的页面")
            job = self._create_job(job_type, builds, options, record, job_id)
        except Exception:
            if options.request_id and job_id:
                self.job_store.release_request(options.request_id, job_id)
            raise

        return self._submit(job, builds, options, rows)

    def _file_name(self, job_type: JobType, options: ExportOptions, record: dict[str, str]) -> str:
        if options.file_name:
            return options.file_name
        if job_type == JobType.PDF_BULK:
            return f"Bulk_Export_{date.today().isoformat()}.zip"
        if job_type == JobType.PDF_CATALOG and not options.filename_pattern:
            return DEFAULT_CATALOG_FILENAME
        return f"{build_filename(options.filename_pattern, record)}.pdf"

    def _create_job(
        self,
        job_type: JobType,
        builds: list[BuildReport],
        options: ExportOptions,
        record: dict[str, str],
        job_id: str | None,
    ) -> ExportJob:
        file_name = self._file_name(job_type, options, record)
        job = self.job_store.create_job(
            job_type.value,
            options.user_id,
            job_id=job_id,
            project_name=options.project_name or ("Bulk Export" if job_type == JobType.PDF_BULK else "Untitled Project"),
            file_name=file_name,
            display_filename=file_name,
            request_id=options.request_id,
            page_count=sum(b.page_count for b in builds),
        )
        for build in builds:
            for flag in build.flags:
                job.add_flag(flag)
        return job

    def _submit(
        self,
        job: ExportJob,
        builds: list[BuildReport],
        options: ExportOptions,
        rows: list[dict[str, str]] | None,
    ) -> str:
        try:
            width, height = self.assembler.canvas_size(options)
            if job.type == JobType.PDF_BULK:
                payload, job.chunks = self._persist_bulk(job.id, builds, rows or [], options, width, height)
            else:
                payload, job.chunks = self._persist_markup(
                    job.id, job.type, builds[0], width, height, job.file_name or job.type.value
                )
            payload.update(self.packager.render_params(options.mode, width, height, job.type.value))

            job.payload = payload
            self.job_store.update_job(job)
            self.packager.generate_manifest(job, self._merged_report(builds))

            report(self.progress_cb, StageEnum.DISPATCH, message="派发中")
            self.dispatcher.enqueue(job.id, payload)
        except (SubmissionError, OSError) as e:
            logger.exception(f"[{job.id}] 提交失败")
            self.job_store.apply_worker_update(job.id, JobStatus.FAILED, error=str(e))
            raise SubmissionError(f"提交失败: {e}", job_id=job.id) from e

        return job.id

    @staticmethod
    def _merged_report(builds: list[BuildReport]) -> BuildReport:
        if len(builds) == 1:
            return builds[0]
        merged = BuildReport()
        offset = 0
        for build in builds:
            merged.pages.extend(build.pages)
            merged.failed_pages.extend(offset + n for n in build.failed_pages)
            for flag in build.flags:
                merged.add_flag(flag)
            offset += build.page_count
        return merged

    def _persist_markup(
        self,
        job_id: str,
        job_type: JobType,
        build: BuildReport,
        width: float,
        height: float,
        title: str,
    ) -> tuple[dict[str, Any], list[JobChunk]]:
        """持久化标记：大目录分块，其余单文档"""
        chunk_size = self.config.export.chunk_size
        report(self.progress_cb, StageEnum.PACKAGE, message="打包标记")

        if job_type == JobType.PDF_CATALOG and build.page_count > chunk_size:
            groups = split_into_chunks(build.pages, chunk_size)
            markups = [self.packager.wrap(pages, width, height, title) for pages in groups]
            ranges = [(pages[0].page_number, pages[-1].page_number) for pages in groups]
            chunks = self.uploader.upload(job_id, markups, ranges)
            report(self.progress_cb, StageEnum.UPLOAD, len(chunks), len(chunks), "分块已上传")
            return {"items": [{"htmlStoragePath": chunk.reference} for chunk in chunks]}, chunks

        reference = self.uploader.upload_document(job_id, self.packager.wrap(build.pages, width, height, title))
        report(self.progress_cb, StageEnum.UPLOAD, message="文档已上传")
        return {"htmlStoragePath": reference}, []

    def _persist_bulk(
        self,
        job_id: str,
        builds: list[BuildReport],
        rows: list[dict[str, str]],
        options: ExportOptions,
        width: float,
        height: float,
    ) -> tuple[dict[str, Any], list[JobChunk]]:
        """批量导出：每行一份独立文档，items 顺序即行顺序"""
        report(self.progress_cb, StageEnum.PACKAGE, message="打包标记")
        names = unique_filenames([build_filename(options.filename_pattern, row) for row in rows])
        markups = [self.packager.wrap(b.pages, width, height, name) for b, name in zip(builds, names)]

        ranges = []
        offset = 0
        for build in builds:
            ranges.append((offset + 1, offset + build.page_count))
            offset += build.page_count

        chunks = self.uploader.upload(job_id, markups, ranges)
        for chunk, name in zip(chunks, names):
            chunk.file_name = f"{name}.pdf"
        report(self.progress_cb, StageEnum.UPLOAD, len(chunks), len(chunks), "文档已上传")
        items = [{"htmlStoragePath": chunk.reference, "fileName": chunk.file_name} for chunk in chunks]
        return {"items": items}, chunks

    # ------------------------------------------------------------------
    # 轮询
    # ------------------------------------------------------------------

    def poll_until_done(self, job_id: str, cancel_token: CancelToken | None = None) -> ExportResult:
        """轮询直到终态（completed 返回结果；failed 抛出 WorkerFailure）"""
        return self.poller.poll_until_done(job_id, cancel_token)

    def close(self) -> None:
        self.dispatcher.shutdown(wait=True)
