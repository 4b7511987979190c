"""
二维码 - 由替换后的内容生成矢量 SVG
"""

from __future__ import annotations

import segno

DEFAULT_QR_CONTENT = "https://doculoom.io"


def qr_svg(content: str, color: str = "#000000") -> str:
    """生成内联SVG（高容错、无边距、透明底，撑满容器）"""
    qr = segno.make(content, error="h")
    svg = qr.svg_inline(dark=color, light=None, border=0, omitsize=True)
    return svg.replace("<svg ", '<svg style="width:100%;height:100%" ', 1)
