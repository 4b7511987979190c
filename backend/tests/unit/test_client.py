"""
导出任务客户端单元测试

每个模块完成后必须运行：pytest backend/tests/unit/test_client.py -v
"""

import json
import threading
import time

import pytest

from pagebind.interfaces import DatasetError, LayoutError, SubmissionError
from pagebind.models import BuildReport, DataSet, ExportMode, ExportOptions, JobStatus, JobType
from pagebind.pipeline import DocumentAssembler, ExportClient, JobManager
from pagebind.pipeline.client import unique_filenames


@pytest.fixture
def make_client(runtime_config, blob_store, fake_worker):
    clients = []

    def _make(**kwargs):
        kwargs.setdefault("blob_store", blob_store)
        kwargs.setdefault("worker", fake_worker)
        client = ExportClient(job_store=JobManager(runtime_config), config=runtime_config, **kwargs)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


@pytest.fixture
def large_dataset():
    rows = [{"Category": "Lamps", "Name": f"Lamp {i}"} for i in range(21)]
    return DataSet(headers=["Category", "Name"], rows=rows)


class SlowAssembler(DocumentAssembler):
    """构建前等待，放大并发提交的竞争窗口"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.builds = 0

    def build_catalog(self, *args, **kwargs):
        self.builds += 1
        time.sleep(0.05)
        return super().build_catalog(*args, **kwargs)


class FailOnceAssembler(DocumentAssembler):
    """首次构建抛出 LayoutError"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.failed = False

    def build_single(self, *args, **kwargs):
        if not self.failed:
            self.failed = True
            raise LayoutError("模拟构建失败")
        return super().build_single(*args, **kwargs)


class EmptyAssembler(DocumentAssembler):
    def build_catalog(self, *args, **kwargs):
        return BuildReport(), None


class TestSubmitSingle:
    """单份导出提交测试"""

    def test_submit_single(self, make_client, make_element, blob_store, fake_worker):
        """测试单文档引用（不分块）"""
        client = make_client()
        elements = [make_element("t", "text", content="{{Name}}", page_index=i) for i in range(7)]
        job_id = client.submit_single(
            elements, {"Name": "Arm Chair"}, ExportOptions(page_count=7, filename_pattern="Sheet {{Name}}")
        )
        client.dispatcher.drain(timeout=5)

        job = client.job_store.get_job(job_id)
        assert job.payload["htmlStoragePath"] == f"memory://inputs/{job_id}.html"
        assert "items" not in job.payload
        assert job.chunks == []
        assert job.file_name == "Sheet Arm Chair.pdf"
        assert job.project_name == "Untitled Project"
        assert list(blob_store.saved) == [f"inputs/{job_id}.html"]
        assert fake_worker.calls[0][0] == job_id

    def test_default_filename(self, make_client, make_element):
        client = make_client()
        job_id = client.submit_single([make_element("a")], {}, ExportOptions())
        file_name = client.job_store.get_job(job_id).file_name
        assert file_name.startswith("specsheet-") and file_name.endswith(".pdf")

    def test_render_params_in_payload(self, make_client, make_element, fake_worker):
        client = make_client()
        client.submit_single([make_element("a")], {}, ExportOptions(mode=ExportMode.PRINT))
        client.dispatcher.drain(timeout=5)
        payload = fake_worker.calls[0][1]
        assert payload["colorModel"] == "cmyk"
        assert payload["type"] == "pdf_single"


class TestSubmitCatalog:
    """目录导出提交测试"""

    def test_submit_catalog_chunked(self, make_client, catalog_sections, large_dataset, blob_store, runtime_config):
        """测试大目录分块引用有序"""
        client = make_client()
        job_id = client.submit_catalog(catalog_sections, large_dataset, ExportOptions(project_name="Lamps"))
        client.dispatcher.drain(timeout=5)

        job = client.job_store.get_job(job_id)
        # 封面 + 目录 + 1章节 + 21产品 + 封底
        assert job.page_count == 25
        assert [c.index for c in job.chunks] == [0, 1, 2, 3, 4]
        assert [(c.page_start, c.page_end) for c in job.chunks][-1] == (21, 25)
        assert job.payload["items"] == [
            {"htmlStoragePath": f"memory://inputs/{job_id}_part{i}.html"} for i in range(5)
        ]
        assert job.file_name == "catalog.pdf"

        manifest = json.loads((runtime_config.get_job_dir(job_id) / "manifest.json").read_text(encoding="utf-8"))
        assert len(manifest["chunks"]) == 5

    def test_small_catalog_single_document(self, make_client, catalog_sections, product_dataset):
        """测试不超过块大小的目录不分块"""
        client = make_client()
        client.config.export.chunk_size = 50
        job_id = client.submit_catalog(catalog_sections, product_dataset, ExportOptions())
        job = client.job_store.get_job(job_id)
        assert job.payload["htmlStoragePath"] == f"memory://inputs/{job_id}.html"

    def test_request_id_idempotent(self, make_client, catalog_sections, product_dataset, fake_worker):
        """测试同一请求键返回同一任务"""
        client = make_client()
        options = ExportOptions(request_id="req-42")
        first = client.submit_catalog(catalog_sections, product_dataset, options)
        second = client.submit_catalog(catalog_sections, product_dataset, options)
        client.dispatcher.drain(timeout=5)
        assert first == second
        assert len(client.job_store.list_jobs()) == 1
        assert len(fake_worker.calls) == 1

    def test_concurrent_same_request(
        self, make_client, runtime_config, catalog_sections, product_dataset, fake_worker
    ):
        """测试并发提交同一请求键只构建/派发一次"""
        assembler = SlowAssembler(config=runtime_config)
        client = make_client(assembler=assembler)
        options = ExportOptions(request_id="req-7")
        job_ids = []
        lock = threading.Lock()
        start = threading.Barrier(3)

        def submit():
            start.wait()
            job_id = client.submit_catalog(catalog_sections, product_dataset, options)
            with lock:
                job_ids.append(job_id)

        threads = [threading.Thread(target=submit) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        client.dispatcher.drain(timeout=5)

        assert len(job_ids) == 3
        assert len(set(job_ids)) == 1
        assert assembler.builds == 1
        assert len(client.job_store.list_jobs()) == 1
        assert len(fake_worker.calls) == 1

    def test_request_id_after_restart(self, make_client, catalog_sections, product_dataset, fake_worker):
        """测试新的任务存储实例（重启后）仍识别已提交的请求键"""
        first_client = make_client()
        options = ExportOptions(request_id="req-9")
        first = first_client.submit_catalog(catalog_sections, product_dataset, options)
        first_client.dispatcher.drain(timeout=5)

        restarted = make_client()
        second = restarted.submit_catalog(catalog_sections, product_dataset, options)
        restarted.dispatcher.drain(timeout=5)

        assert first == second
        assert len(fake_worker.calls) == 1

    def test_build_failure_releases_request(self, make_client, runtime_config, make_element, fake_worker):
        """测试构建失败不占用请求键，重试可正常提交"""
        client = make_client(assembler=FailOnceAssembler(config=runtime_config))
        options = ExportOptions(request_id="req-3")
        with pytest.raises(LayoutError):
            client.submit_single([make_element("a")], {}, options)
        assert client.job_store.list_jobs() == []

        job_id = client.submit_single([make_element("a")], {}, options)
        client.dispatcher.drain(timeout=5)
        assert client.job_store.find_by_request("req-3").id == job_id
        assert [call[0] for call in fake_worker.calls] == [job_id]

    def test_empty_dataset_rejected(self, make_client, catalog_sections, fake_worker):
        """测试空数据集在创建任务前拒绝"""
        client = make_client()
        with pytest.raises(DatasetError):
            client.submit_catalog(catalog_sections, DataSet(headers=["Name"]), ExportOptions(request_id="req-5"))
        assert client.job_store.list_jobs() == []
        assert client.job_store.find_by_request("req-5") is None
        assert fake_worker.calls == []

    def test_no_pages_rejected(self, make_client, runtime_config, catalog_sections, product_dataset):
        """测试构建结果没有页面 → DatasetError，不创建任务"""
        client = make_client(assembler=EmptyAssembler(config=runtime_config))
        with pytest.raises(DatasetError):
            client.submit_catalog(catalog_sections, product_dataset, ExportOptions())
        assert client.job_store.list_jobs() == []

    def test_upload_failure_marks_failed(self, make_client, make_blob_store, catalog_sections, large_dataset):
        """测试任务创建后上传失败 → failed + SubmissionError"""
        client = make_client(blob_store=make_blob_store(fail_times={"_part2": 10}))
        with pytest.raises(SubmissionError) as exc_info:
            client.submit_catalog(catalog_sections, large_dataset, ExportOptions())

        job = client.job_store.get_job(exc_info.value.job_id)
        assert job.status == JobStatus.FAILED
        assert "_part2" in job.error

    def test_progress_callback(self, runtime_config, blob_store, fake_worker, catalog_sections, product_dataset):
        events = []
        client = ExportClient(
            job_store=JobManager(runtime_config),
            blob_store=blob_store,
            worker=fake_worker,
            config=runtime_config,
            progress_cb=lambda stage, percent, message: events.append(stage),
        )
        client.submit_catalog(catalog_sections, product_dataset, ExportOptions())
        client.close()
        assert events[0] == "PLAN"
        assert events[-1] == "DISPATCH"
        assert "UPLOAD" in events


class TestSubmitBulk:
    """批量导出提交测试"""

    def test_submit_bulk(self, make_client, make_element, product_dataset, blob_store, fake_worker):
        """测试每行一份文档，文件名按行生成且重名追加序号"""
        client = make_client()
        elements = [make_element("name", "dataField", data_binding="Name")]
        job_id = client.submit_bulk(elements, product_dataset, ExportOptions(filename_pattern="{{Category}}"))
        client.dispatcher.drain(timeout=5)

        job = client.job_store.get_job(job_id)
        assert job.type == JobType.PDF_BULK
        assert job.page_count == 5
        assert job.file_name.startswith("Bulk_Export_") and job.file_name.endswith(".zip")
        assert job.project_name == "Bulk Export"
        assert job.payload["type"] == "pdf_bulk"
        assert [item["fileName"] for item in job.payload["items"]] == [
            "Chairs.pdf",
            "Chairs_1.pdf",
            "Tables.pdf",
            "Tables_1.pdf",
            "Tables_2.pdf",
        ]
        assert [item["htmlStoragePath"] for item in job.payload["items"]] == [
            f"memory://inputs/{job_id}_part{i}.html" for i in range(5)
        ]
        assert "Dining Table" in blob_store.saved[f"inputs/{job_id}_part2.html"]
        assert "Arm Chair" not in blob_store.saved[f"inputs/{job_id}_part2.html"]
        assert [(c.page_start, c.page_end) for c in job.chunks] == [(i, i) for i in range(1, 6)]
        assert len(fake_worker.calls) == 1

    def test_bulk_multi_page_rows(self, make_client, make_element, product_dataset):
        """测试多页设计：每份文档包含全部设计页"""
        client = make_client()
        elements = [make_element("t", "text", content="{{SKU}}", page_index=i) for i in range(2)]
        job_id = client.submit_bulk(
            elements, product_dataset, ExportOptions(page_count=2, filename_pattern="{{SKU}}", file_name="all.zip")
        )
        job = client.job_store.get_job(job_id)
        assert job.file_name == "all.zip"
        assert job.page_count == 10
        assert [c.file_name for c in job.chunks] == ["C-1.pdf", "C-2.pdf", "T-1.pdf", "T-2.pdf", "T-3.pdf"]
        assert job.chunks[-1].page_start == 9 and job.chunks[-1].page_end == 10

    def test_bulk_empty_dataset(self, make_client, make_element, fake_worker):
        client = make_client()
        with pytest.raises(DatasetError):
            client.submit_bulk([make_element("a")], DataSet(headers=["Name"]), ExportOptions())
        assert client.job_store.list_jobs() == []


class TestUniqueFilenames:
    def test_suffixes_in_order(self):
        assert unique_filenames(["a", "b", "a", "a"]) == ["a", "b", "a_1", "a_2"]


class TestPollUntilDone:
    """提交后轮询测试"""

    def test_poll_after_worker_callback(self, make_client, make_element):
        client = make_client()
        job_id = client.submit_single([make_element("a")], {}, ExportOptions(file_name="a.pdf"))
        client.dispatcher.drain(timeout=5)
        client.job_store.apply_worker_update(job_id, JobStatus.COMPLETED, result_location="exports/a.pdf")

        result = client.poll_until_done(job_id)
        assert result.result_location == "exports/a.pdf"
        assert result.file_name == "a.pdf"
