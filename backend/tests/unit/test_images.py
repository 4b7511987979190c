"""
图片处理单元测试

每个模块完成后必须运行：pytest backend/tests/unit/test_images.py -v
"""

import base64
import io

import httpx
from PIL import Image

from pagebind.models import ExportMode
from pagebind.render import ImageOptimizer


def _decode(data_url: str) -> Image.Image:
    header, _, payload = data_url.partition(",")
    assert header == "data:image/jpeg;base64"
    return Image.open(io.BytesIO(base64.b64decode(payload)))


class TestImageOptimizer:
    """图片处理器测试"""

    def test_digital_downscale(self, runtime_config, large_png):
        """测试缩放到显示尺寸的2倍以内"""
        result = ImageOptimizer(runtime_config).prepare(str(large_png), 200, 100, ExportMode.DIGITAL)
        img = _decode(result)
        assert img.size == (400, 200)

    def test_png_forced_lossy(self, runtime_config, large_png):
        """测试无损原图也输出 JPEG（透明铺白底）"""
        result = ImageOptimizer(runtime_config).prepare(str(large_png), 2000, 1000, ExportMode.DIGITAL)
        img = _decode(result)
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        assert img.size == (2000, 1000)

    def test_data_url_source(self, runtime_config, small_jpeg):
        """测试 data URL 输入"""
        src = "data:image/jpeg;base64," + base64.b64encode(small_jpeg.read_bytes()).decode()
        result = ImageOptimizer(runtime_config).prepare(src, 25, 25, ExportMode.DIGITAL)
        assert _decode(result).size == (50, 50)

    def test_print_passthrough(self, runtime_config, large_png):
        """测试印刷模式原样输出"""
        src = str(large_png)
        assert ImageOptimizer(runtime_config).prepare(src, 200, 100, ExportMode.PRINT) == src

    def test_fallback_on_error(self, runtime_config, tmp_path):
        """测试读取失败时返回原地址"""
        src = str(tmp_path / "missing.png")
        assert ImageOptimizer(runtime_config).prepare(src, 200, 100, ExportMode.DIGITAL) == src

    def test_remote_image(self, runtime_config, small_jpeg):
        """测试拉取远程图片"""
        content = small_jpeg.read_bytes()
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=content))
        optimizer = ImageOptimizer(runtime_config, client=httpx.Client(transport=transport))
        result = optimizer.prepare("https://cdn.example.com/a.jpg", 10, 10, ExportMode.DIGITAL)
        assert _decode(result).size == (20, 20)

    def test_remote_error_fallback(self, runtime_config):
        """测试远程图片 404 时返回原地址"""
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        optimizer = ImageOptimizer(runtime_config, client=httpx.Client(transport=transport))
        src = "https://cdn.example.com/missing.jpg"
        assert optimizer.prepare(src, 10, 10, ExportMode.DIGITAL) == src

    def test_effective_dpi(self, runtime_config, large_png, small_jpeg):
        """测试有效DPI与低分辨率判定"""
        optimizer = ImageOptimizer(runtime_config)
        assert optimizer.effective_dpi(str(large_png), 400) == 480
        assert not optimizer.is_low_resolution(str(large_png), 400)
        assert optimizer.is_low_resolution(str(small_jpeg), 300)
