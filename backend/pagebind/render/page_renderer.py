"""
页面渲染器 - 重排后的元素 + 记录 → 单页文档

职责：
1. 按 zIndex 排序，跳过隐藏元素，每个元素绝对定位
2. 按元素类型生成内部标记（文本/形状/图片/二维码/表格/目录）
3. 未授权调用方追加水印
4. 印刷模式下检查图片有效分辨率（记为告警，不中断）

测试要点：
- test_text_tokens: 占位符替换 + 格式化 + 转义
- test_z_order: 元素按 zIndex 输出
- test_watermark: 水印仅对未授权调用方
- test_toc_paged: 分页目录标题仅第一页
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field

from ..interfaces import RenderError
from ..models import (
    DataSet,
    Element,
    ElementType,
    ExportMode,
    PageDocument,
    PageMapEntry,
    ShapeStyle,
    TextStyle,
)
from .formatter import format_content, is_html
from .images import ImageOptimizer
from .qr import DEFAULT_QR_CONTENT, qr_svg
from .styles import css, flex_alignment_css, text_css
from .tables import render_table
from .toc import TocRow, build_toc_rows, render_toc, toc_settings
from ..tokens import substitute_tokens

logger = logging.getLogger(__name__)

WATERMARK_HTML = (
    '<div class="watermark" style="position: absolute; bottom: 16px; right: 16px; '
    "opacity: 0.5; pointer-events: none; z-index: 9999; font-family: sans-serif; "
    "font-size: 12px; color: #000000; background-color: rgba(255,255,255,0.7); "
    'padding: 4px 8px; border-radius: 4px">Created with <b>Doculoom</b></div>'
)


@dataclass
class RenderContext:
    """单页渲染上下文"""
    page_number: int
    width: float
    height: float
    record: dict[str, str] = field(default_factory=dict)
    dataset: DataSet = field(default_factory=DataSet)
    background_color: str = "#ffffff"
    kind: str = "page"
    group: str | None = None
    row_index: int | None = None
    mode: ExportMode = ExportMode.DIGITAL
    licensed: bool = False

    # 目录页
    page_map: list[PageMapEntry] = field(default_factory=list)
    toc_rows: list[TocRow] | None = None
    toc_first_page: bool = True


class PageRenderer:
    """页面渲染器"""

    def __init__(self, image_optimizer: ImageOptimizer | None = None):
        self.images = image_optimizer or ImageOptimizer()

    def render(self, elements: list[Element], ctx: RenderContext) -> PageDocument:
        """渲染单页（元素应已完成重排）"""
        page = PageDocument(
            page_number=ctx.page_number,
            kind=ctx.kind,
            width=ctx.width,
            height=ctx.height,
            background_color=ctx.background_color,
            group=ctx.group,
            row_index=ctx.row_index,
        )

        parts: list[str] = []
        for element in sorted(elements, key=lambda el: el.z_index):
            if not element.visible:
                continue
            try:
                inner, extra = self._render_element(element, ctx, page)
            except (ValueError, TypeError, KeyError) as e:
                raise RenderError(
                    f"元素渲染失败: {element.id}: {e}", page_index=ctx.page_number
                ) from e
            parts.append(self._wrap(element, inner, extra))

        if not ctx.licensed:
            parts.append(WATERMARK_HTML)

        container_css = css({
            "position": "relative",
            "width": f"{ctx.width}px",
            "height": f"{ctx.height}px",
            "background-color": ctx.background_color,
            "overflow": "hidden",
        })
        page.html = f'<div class="page" style="{container_css}">{"".join(parts)}</div>'
        return page

    def _wrap(self, element: Element, inner: str, extra: dict) -> str:
        box = {
            "position": "absolute",
            "left": f"{element.position.x}px",
            "top": f"{element.position.y}px",
            "width": f"{element.dimension.width}px",
            "height": f"{element.dimension.height}px",
            "transform": f"rotate({element.rotation}deg)" if element.rotation else None,
            "box-sizing": "border-box",
            "z-index": int(element.z_index),
        }
        box.update(extra)
        return f'<div id="el-{html.escape(element.id)}" style="{css(box)}">{inner}</div>'

    def _render_element(self, element: Element, ctx: RenderContext, page: PageDocument) -> tuple[str, dict]:
        if element.type in (ElementType.TEXT, ElementType.DATA_FIELD):
            return self._render_text(element, ctx)
        if element.type == ElementType.SHAPE:
            return self._render_shape(element)
        if element.type == ElementType.IMAGE:
            return self._render_image(element, ctx, page)
        if element.type == ElementType.QRCODE:
            return self._render_qr(element, ctx)
        if element.type == ElementType.TABLE:
            return render_table(element, ctx.dataset, ctx.record), {"overflow": "hidden"}
        if element.type == ElementType.TOC_LIST:
            return self._render_toc(element, ctx)
        return "", {}

    def _render_text(self, element: Element, ctx: RenderContext) -> tuple[str, dict]:
        style = element.text_style or TextStyle()
        content = element.content or (f"{{{{{element.data_binding}}}}}" if element.data_binding else "")
        content = format_content(substitute_tokens(content, ctx.record), element.format)

        extra = {**text_css(style), **flex_alignment_css(style)}
        extra.update({"padding": "4px", "word-break": "break-word", "overflow": "visible"})

        if is_html(content):
            extra["white-space"] = "normal"
            list_style = element.format.list_style if element.format else "none"
            scope = f"#el-{html.escape(element.id)}"
            list_rule = f" list-style-type: {list_style} !important;" if list_style != "none" else ""
            rules = (
                f"<style>{scope} ul, {scope} ol {{ margin: 0 !important; padding-left: 1.5em !important; "
                f"display: block !important;{list_rule} }} "
                f"{scope} li {{ margin: 0.2em 0 !important; display: list-item !important; }} "
                f"{scope} p {{ margin: 0.2em 0; }}</style>"
            )
            return rules + content, extra

        extra["white-space"] = "pre-wrap"
        return html.escape(content), extra

    @staticmethod
    def _render_shape(element: Element) -> tuple[str, dict]:
        style = element.shape_style or ShapeStyle()
        if element.shape_type == "line":
            stroke = css({
                "width": "100%",
                "height": f"{style.stroke_width}px",
                "background-color": style.stroke,
            })
            extra = {
                "opacity": style.opacity,
                "display": "flex",
                "align-items": "center",
                "justify-content": "center",
            }
            return f'<div style="{stroke}"></div>', extra

        radius = "50%" if element.shape_type == "circle" else f"{style.border_radius}px"
        return "", {
            "opacity": style.opacity,
            "background-color": style.fill,
            "border": f"{style.stroke_width}px solid {style.stroke}",
            "border-radius": radius,
        }

    def _render_image(self, element: Element, ctx: RenderContext, page: PageDocument) -> tuple[str, dict]:
        src = element.image_src
        if element.data_binding and ctx.record.get(element.data_binding):
            src = ctx.record[element.data_binding]
        if not src:
            return "", {}

        width, height = element.dimension.width, element.dimension.height
        if ctx.mode == ExportMode.PRINT and self.images.is_low_resolution(src, width):
            page.add_flag(f"低分辨率图片: 第{ctx.page_number}页 元素 {element.id}")
            logger.warning(f"第{ctx.page_number}页图片分辨率低于印刷要求: {element.id}")

        final_src = self.images.prepare(src, width, height, ctx.mode)
        img_css = css({"width": "100%", "height": "100%", "object-fit": "contain"})
        return f'<img src="{html.escape(final_src, quote=True)}" style="{img_css}">', {}

    @staticmethod
    def _render_qr(element: Element, ctx: RenderContext) -> tuple[str, dict]:
        content = substitute_tokens(element.content or DEFAULT_QR_CONTENT, ctx.record)
        if not content:
            return "", {}
        color = element.text_style.color if element.text_style else "#000000"
        return qr_svg(content, color), {}

    @staticmethod
    def _render_toc(element: Element, ctx: RenderContext) -> tuple[str, dict]:
        settings = toc_settings(element)
        if ctx.toc_rows is not None:
            rows = ctx.toc_rows
            show_title = ctx.toc_first_page
        else:
            rows = build_toc_rows(ctx.page_map, settings.group_by_field)
            show_title = True

        extra = {
            "padding": "16px",
            "display": "flex",
            "flex-direction": "column",
            "background-color": "#ffffff",
            "border-radius": "4px",
        }
        return render_toc(element, rows, show_title=show_title), extra
