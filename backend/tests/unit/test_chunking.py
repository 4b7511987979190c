"""
分块、存储与打包单元测试

每个模块完成后必须运行：pytest backend/tests/unit/test_chunking.py -v
"""

import json
import threading
import time

import httpx
import pytest

from pagebind.interfaces import SubmissionError
from pagebind.models import BuildReport, ExportMode, PageDocument
from pagebind.pipeline import (
    ChunkUploader,
    HttpRenderWorker,
    JobManager,
    LocalBlobStore,
    MarkupPackager,
    chunk_key,
    split_into_chunks,
)


class TestSplitIntoChunks:
    """切分测试"""

    def test_split_23_pages(self):
        """测试23页/每块5页 → 4×5 + 1×3"""
        chunks = split_into_chunks(list(range(1, 24)), 5)
        assert [len(c) for c in chunks] == [5, 5, 5, 5, 3]
        assert chunks[-1] == [21, 22, 23]

    def test_split_exact(self):
        assert [len(c) for c in split_into_chunks(list(range(10)), 5)] == [5, 5]

    def test_split_empty(self):
        assert split_into_chunks([], 5) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            split_into_chunks([1], 0)


class TestChunkUploader:
    """分块上传测试"""

    def test_upload_order_by_index(self, runtime_config, blob_store):
        """测试乱序完成仍按序号返回"""
        original_save = blob_store.save
        lock = threading.Lock()

        def slow_first(key, content, content_type="text/html"):
            if key.endswith("_part0.html"):
                time.sleep(0.05)
            with lock:
                return original_save(key, content, content_type)

        blob_store.save = slow_first
        chunks = ChunkUploader(blob_store, runtime_config).upload(
            "job1", ["a", "b", "c"], [(1, 5), (6, 10), (11, 12)]
        )
        assert [c.index for c in chunks] == [0, 1, 2]
        assert [c.reference for c in chunks] == [f"memory://{chunk_key('job1', i)}" for i in range(3)]
        assert chunks[2].page_start == 11 and chunks[2].page_end == 12
        assert blob_store.saved[chunk_key("job1", 1)] == "b"

    def test_upload_retry(self, runtime_config, make_blob_store):
        """测试单块重试后成功"""
        store = make_blob_store(fail_times={"_part1": 2})
        delays = []
        chunks = ChunkUploader(store, runtime_config, sleep=delays.append).upload(
            "job1", ["a", "b"], [(1, 5), (6, 8)]
        )
        assert all(c.reference for c in chunks)
        assert len(delays) == 2

    def test_upload_exhausted(self, runtime_config, make_blob_store):
        """测试重试耗尽抛出 SubmissionError"""
        store = make_blob_store(fail_times={"_part0": 10})
        with pytest.raises(SubmissionError):
            ChunkUploader(store, runtime_config).upload("job1", ["a"], [(1, 5)])

    def test_upload_timeout(self, runtime_config, blob_store):
        """测试超过 upload_sec 抛出 SubmissionError（不等待卡住的上传）"""
        release = threading.Event()

        def stuck(key, content, content_type="text/html"):
            release.wait(5)
            return key

        blob_store.save = stuck
        runtime_config.timeouts.upload_sec = 0.05
        try:
            with pytest.raises(SubmissionError, match="上传超时"):
                ChunkUploader(blob_store, runtime_config).upload_document("job1", "<html>")
        finally:
            release.set()

    def test_upload_document(self, runtime_config, blob_store):
        ref = ChunkUploader(blob_store, runtime_config).upload_document("job1", "<html>")
        assert ref == "memory://inputs/job1.html"


class TestLocalBlobStore:
    """本地存储测试"""

    def test_save_and_read(self, runtime_config):
        store = LocalBlobStore(config=runtime_config)
        key = store.save("inputs/job1.html", "<p>hi</p>")
        assert key == "inputs/job1.html"
        assert store.exists(key)
        assert store.read(key) == "<p>hi</p>"
        assert (runtime_config.storage_dir / "inputs" / "job1.html").exists()

    def test_reject_traversal(self, tmp_path):
        store = LocalBlobStore(root=tmp_path / "blobs")
        with pytest.raises(ValueError):
            store.save("../escape.html", "x")


class TestMarkupPackager:
    """打包测试"""

    def _pages(self, count):
        return [
            PageDocument(page_number=i, width=400, height=600, html=f"<div>page {i}</div>")
            for i in range(1, count + 1)
        ]

    def test_wrap_pages(self, runtime_config):
        """测试页面容器与 @page 尺寸"""
        markup = MarkupPackager(runtime_config).wrap(self._pages(3), 400, 600, "A & B")
        assert markup.startswith("<!DOCTYPE html>")
        assert markup.count('<div class="page-container">') == 3
        assert "@page { size: 400px 600px; margin: 0; }" in markup
        assert "<title>A &amp; B</title>" in markup
        assert "fonts.googleapis.com" in markup

    def test_render_params(self, runtime_config):
        """测试数字版/印刷版参数"""
        packager = MarkupPackager(runtime_config)
        digital = packager.render_params(ExportMode.DIGITAL, 816, 1056, "pdf_single")
        printed = packager.render_params(ExportMode.PRINT, 816, 1056, "pdf_catalog")
        assert (digital["scale"], digital["colorModel"]) == (2.0, "rgb")
        assert (printed["scale"], printed["colorModel"]) == (3.125, "cmyk")
        assert printed["type"] == "pdf_catalog"

    def test_manifest_structure(self, runtime_config):
        """测试 manifest 结构"""
        job = JobManager(runtime_config).create_job("pdf_single", "u1", page_count=2)
        job.payload = {"htmlStoragePath": "inputs/x.html", "scale": 2.0}
        job.add_flag("低分辨率图片: 第1页 元素 img")
        build = BuildReport(pages=self._pages(2), failed_pages=[2])

        path = MarkupPackager(runtime_config).generate_manifest(job, build)
        manifest = json.loads(path.read_text(encoding="utf-8"))
        assert manifest["schema_version"] == "1.0"
        assert manifest["job_id"] == job.id
        assert manifest["single_document"] == "inputs/x.html"
        assert manifest["inputs"]["render"] == {"scale": 2.0}
        assert manifest["failed_pages"] == [2]
        assert manifest["flags"] == job.flags


class TestHttpRenderWorker:
    """HTTP worker 测试"""

    def test_submit(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(202)

        worker = HttpRenderWorker("http://worker.test/", client=httpx.Client(transport=httpx.MockTransport(handler)))
        worker.submit("job1", {"htmlStoragePath": "inputs/job1.html"})
        assert seen["url"] == "http://worker.test/process-job"
        assert seen["body"] == {"jobId": "job1", "data": {"htmlStoragePath": "inputs/job1.html"}}

    def test_submit_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        worker = HttpRenderWorker("http://worker.test", client=httpx.Client(transport=transport))
        with pytest.raises(SubmissionError) as exc_info:
            worker.submit("job1", {})
        assert exc_info.value.job_id == "job1"
