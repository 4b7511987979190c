"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(runtime_config, make_element):
        table = make_element("t1", "table", y=50, height=100)
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Callable

import pytest
from PIL import Image

from pagebind.config import RuntimeConfig
from pagebind.config import runtime_config as runtime_config_module
from pagebind.interfaces import IBlobStore, IRenderWorker, SubmissionError
from pagebind.models import (
    CatalogSection,
    CatalogSections,
    DataSet,
    Element,
    ElementType,
    TableColumn,
    TableSettings,
    TocSettings,
)


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def runtime_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> RuntimeConfig:
    """运行期配置（存储目录指向临时目录，重试/轮询不等待）"""
    config = RuntimeConfig(storage_dir=tmp_path / "storage")
    config.retries.retry_backoff_ms = 0
    config.polling.interval_sec = 0
    config.polling.max_interval_sec = 0
    config.ensure_dirs()
    monkeypatch.setattr(runtime_config_module, "_config", config)
    return config


# ============================================================================
# 元素 / 数据 Fixtures
# ============================================================================

@pytest.fixture
def make_element() -> Callable[..., Element]:
    """元素工厂"""

    def _make(
        element_id: str,
        element_type: str = "shape",
        x: float = 0,
        y: float = 0,
        width: float = 100,
        height: float = 100,
        **kwargs: Any,
    ) -> Element:
        return Element(
            id=element_id,
            type=ElementType(element_type),
            position={"x": x, "y": y},
            dimension={"width": width, "height": height},
            **kwargs,
        )

    return _make


@pytest.fixture
def driver_table(make_element: Callable[..., Element]) -> Element:
    """驱动表格：y=50，高100"""
    return make_element(
        "driver",
        "table",
        x=0,
        y=50,
        width=300,
        height=100,
        table_settings=TableSettings(
            auto_height_adaptation=True,
            columns=[TableColumn(id="c1", header="Name", data_field="Name")],
        ),
    )


@pytest.fixture
def product_dataset() -> DataSet:
    """两组产品数据（连续分组）"""
    headers = ["Category", "SKU", "Name", "Price"]
    rows = [
        {"Category": "Chairs", "SKU": "C-1", "Name": "Arm Chair", "Price": "120"},
        {"Category": "Chairs", "SKU": "C-2", "Name": "Side Chair", "Price": "80"},
        {"Category": "Tables", "SKU": "T-1", "Name": "Dining Table", "Price": "450"},
        {"Category": "Tables", "SKU": "T-2", "Name": "Coffee Table", "Price": "210"},
        {"Category": "Tables", "SKU": "T-3", "Name": "", "Price": "99"},
    ]
    return DataSet(headers=headers, rows=rows, file_name="products.xlsx")


@pytest.fixture
def catalog_sections(make_element: Callable[..., Element]) -> CatalogSections:
    """包含全部分节的目录设计"""
    return CatalogSections(
        cover=CatalogSection(elements=[make_element("cover-title", "text", content="Catalog 2026")]),
        toc=CatalogSection(
            elements=[
                make_element(
                    "toc",
                    "toc-list",
                    width=600,
                    height=900,
                    toc_settings=TocSettings(group_by_field="Category"),
                )
            ]
        ),
        chapter=CatalogSection(
            elements=[make_element("chapter-title", "text", content="{{Category}}")],
            background_color="#eeeeee",
        ),
        product=CatalogSection(
            elements=[
                make_element("name", "dataField", data_binding="Name"),
                make_element("price", "text", y=200, content="Price: {{Price}}"),
            ]
        ),
        back=CatalogSection(elements=[make_element("back-note", "text", content="Thank you")]),
    )


# ============================================================================
# 图片 Fixtures
# ============================================================================

def _image_bytes(size: tuple[int, int], fmt: str, mode: str = "RGB") -> bytes:
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def large_png(tmp_path: Path) -> Path:
    """2000×1000 带透明通道的 PNG"""
    path = tmp_path / "large.png"
    path.write_bytes(_image_bytes((2000, 1000), "PNG", mode="RGBA"))
    return path


@pytest.fixture
def small_jpeg(tmp_path: Path) -> Path:
    """100×100 JPEG"""
    path = tmp_path / "small.jpg"
    path.write_bytes(_image_bytes((100, 100), "JPEG"))
    return path


# ============================================================================
# 替身实现
# ============================================================================

class MemoryBlobStore(IBlobStore):
    """内存分块存储（可指定前若干次保存失败）"""

    def __init__(self, fail_times: dict[str, int] | None = None):
        self.saved: dict[str, str] = {}
        self.save_order: list[str] = []
        self._fail_times = dict(fail_times or {})

    def save(self, key: str, content: str, content_type: str = "text/html") -> str:
        for pattern, remaining in self._fail_times.items():
            if pattern in key and remaining > 0:
                self._fail_times[pattern] = remaining - 1
                raise SubmissionError(f"模拟上传失败: {key}")
        self.saved[key] = content
        self.save_order.append(key)
        return f"memory://{key}"

    def exists(self, key: str) -> bool:
        return key in self.saved


class FakeWorker(IRenderWorker):
    """记录派发请求的 worker（可指定前若干次失败）"""

    def __init__(self, fail_times: int = 0):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._fail_times = fail_times

    def submit(self, job_id: str, payload: dict[str, Any]) -> None:
        if self._fail_times > 0:
            self._fail_times -= 1
            raise SubmissionError("模拟派发失败", job_id=job_id)
        self.calls.append((job_id, payload))


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def fake_worker() -> FakeWorker:
    return FakeWorker()


@pytest.fixture
def make_blob_store() -> Callable[..., MemoryBlobStore]:
    return MemoryBlobStore


@pytest.fixture
def make_worker() -> Callable[..., FakeWorker]:
    return FakeWorker
