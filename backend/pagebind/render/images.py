"""
图片处理 - 数字版压缩与印刷版原样输出

职责：
1. digital 模式：缩放到不超过显示尺寸的2倍，并强制有损重编码（原图无损也一样）
2. print 模式：原样透传
3. 印刷分辨率检查（有效DPI = 原始宽度 / 显示宽度 × 96）

依赖：
- Pillow: 解码/缩放/JPEG 编码
- httpx: 拉取远程图片

测试要点：
- test_digital_downscale: 超大图缩放
- test_png_forced_lossy: PNG 也输出 JPEG
- test_print_passthrough: 印刷模式不处理
- test_fallback_on_error: 读取失败时返回原地址
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from ..config import RuntimeConfig, get_config
from ..models import ExportMode

logger = logging.getLogger(__name__)

CSS_DPI = 96


class ImageOptimizer:
    """图片处理器"""

    def __init__(self, config: RuntimeConfig | None = None, client: httpx.Client | None = None):
        self.config = config or get_config()
        self._client = client

    def prepare(self, src: str, display_width: float, display_height: float, mode: ExportMode) -> str:
        """返回用于页面标记的图片地址"""
        if mode == ExportMode.PRINT or not src:
            return src

        try:
            data = self._load_bytes(src)
            return self._compress(data, display_width, display_height)
        except (OSError, ValueError, UnidentifiedImageError, httpx.HTTPError) as e:
            logger.warning(f"图片压缩失败，使用原图: {src[:80]}: {e}")
            return src

    def effective_dpi(self, src: str, display_width: float) -> float | None:
        """计算有效DPI（读取失败返回 None）"""
        if not src or display_width <= 0:
            return None
        try:
            with Image.open(io.BytesIO(self._load_bytes(src))) as img:
                return img.width / display_width * CSS_DPI
        except (OSError, ValueError, UnidentifiedImageError, httpx.HTTPError) as e:
            logger.warning(f"无法读取图片尺寸: {src[:80]}: {e}")
            return None

    def is_low_resolution(self, src: str, display_width: float) -> bool:
        dpi = self.effective_dpi(src, display_width)
        return dpi is not None and dpi < self.config.images.min_print_dpi

    def _compress(self, data: bytes, display_width: float, display_height: float) -> str:
        max_scale = self.config.images.digital_max_scale
        max_w = max(1.0, display_width * max_scale)
        max_h = max(1.0, display_height * max_scale)

        with Image.open(io.BytesIO(data)) as img:
            scale = min(1.0, max_w / img.width, max_h / img.height)
            target = (max(1, round(img.width * scale)), max(1, round(img.height * scale)))
            resized = img.resize(target, resample=Image.Resampling.LANCZOS) if scale < 1 else img.copy()

        rgb = _flatten(resized)
        buf = io.BytesIO()
        rgb.save(buf, format="JPEG", quality=self.config.images.jpeg_quality, optimize=True)
        encoded = base64.b64encode(buf.getvalue()).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"

    def _load_bytes(self, src: str) -> bytes:
        if src.startswith("data:"):
            header, _, payload = src.partition(",")
            if ";base64" not in header:
                raise ValueError("仅支持 base64 data URL")
            try:
                return base64.b64decode(payload, validate=True)
            except binascii.Error as e:
                raise ValueError(f"data URL 解码失败: {e}") from e

        if src.startswith(("http://", "https://")):
            timeout = self.config.timeouts.image_fetch_sec
            if self._client is not None:
                response = self._client.get(src, timeout=timeout)
            else:
                response = httpx.get(src, timeout=timeout, follow_redirects=True)
            response.raise_for_status()
            return response.content

        return Path(src).read_bytes()


def _flatten(img: Image.Image) -> Image.Image:
    """透明通道铺白底后转 RGB"""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        bg = Image.new("RGB", rgba.size, (255, 255, 255))
        bg.paste(rgba, mask=rgba.split()[-1])
        return bg
    if img.mode != "RGB":
        return img.convert("RGB")
    return img
