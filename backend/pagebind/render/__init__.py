"""
渲染模块 - 重排后的元素 → 页面标记

子模块：
- page_renderer: 单页渲染（按元素类型分派）
- tokens / formatter: 占位符替换与值格式化
- images / qr: 图片压缩与矢量二维码
- tables / toc: 表格与目录列表（含目录分页）
- styles: 字体映射与内联样式
"""

from .formatter import format_content, format_date, is_html, to_fraction
from .images import ImageOptimizer
from .page_renderer import WATERMARK_HTML, PageRenderer, RenderContext
from .qr import qr_svg
from .styles import OPEN_SOURCE_FONT_MAP, google_fonts_query, map_font
from .tables import render_table, visible_property_rows
from .toc import TocRow, build_toc_rows, paginate_toc, render_toc
from ..tokens import build_filename, has_tokens, substitute_tokens

__all__ = [
    "PageRenderer",
    "RenderContext",
    "WATERMARK_HTML",
    "ImageOptimizer",
    "substitute_tokens",
    "has_tokens",
    "build_filename",
    "format_content",
    "format_date",
    "is_html",
    "to_fraction",
    "qr_svg",
    "OPEN_SOURCE_FONT_MAP",
    "map_font",
    "google_fonts_query",
    "render_table",
    "visible_property_rows",
    "TocRow",
    "build_toc_rows",
    "paginate_toc",
    "render_toc",
]
