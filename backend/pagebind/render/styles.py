"""
样式工具 - 字体映射与内联CSS生成
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..models import TextStyle

# 商用字体 → 开源等宽替代（渲染 worker 只加载开源字体）
OPEN_SOURCE_FONT_MAP: dict[str, str] = {
    "Arial": "Arimo",
    "Helvetica": "Arimo",
    "Times New Roman": "Tinos",
    "Courier New": "Cousine",
    "Georgia": "Gelasio",
}

AVAILABLE_FONTS = (
    "Inter",
    "Roboto",
    "Open Sans",
    "Lato",
    "Montserrat",
    "JetBrains Mono",
    "Arial",
    "Helvetica",
    "Times New Roman",
    "Courier New",
    "Georgia",
)

_JUSTIFY = {"top": "flex-start", "middle": "center", "bottom": "flex-end"}
_ALIGN_ITEMS = {"left": "flex-start", "center": "center", "right": "flex-end"}


def map_font(name: str | None) -> str:
    raw = name or "Inter"
    return OPEN_SOURCE_FONT_MAP.get(raw, raw)


def font_stack(name: str | None) -> str:
    return f'"{map_font(name)}", sans-serif'


def css(props: dict[str, Any]) -> str:
    """dict → 内联样式字符串（值为 None 的属性跳过）"""
    return "; ".join(f"{k}: {v}" for k, v in props.items() if v is not None and v != "")


def text_css(style: TextStyle) -> dict[str, Any]:
    return {
        "font-family": font_stack(style.font_family),
        "font-size": f"{style.font_size}px",
        "font-weight": style.font_weight,
        "color": style.color,
        "line-height": style.line_height,
        "letter-spacing": f"{style.letter_spacing}px",
    }


def flex_alignment_css(style: TextStyle) -> dict[str, Any]:
    """文本框的水平/垂直对齐"""
    return {
        "display": "flex",
        "flex-direction": "column",
        "text-align": style.text_align,
        "justify-content": _JUSTIFY.get(style.vertical_align, "center"),
        "align-items": _ALIGN_ITEMS.get(style.text_align, "flex-start"),
    }


def google_fonts_query() -> str:
    families = []
    for font in AVAILABLE_FONTS:
        mapped = map_font(font).replace(" ", "+")
        family = f"family={mapped}:wght@400;700"
        if family not in families:
            families.append(family)
    return "&".join(families)
