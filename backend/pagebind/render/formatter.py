"""
值格式化 - 数字/日期/布尔/文本大小写/列表

对应编辑器的 format 配置；无法解析的值原样返回
"""

from __future__ import annotations

import html
import math
import re
from datetime import datetime

from ..models import ElementFormat

_HTML_RE = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)
_TAG_SPLIT_RE = re.compile(r"(<[^>]+>)")
_WORD_RE = re.compile(r"\w\S*")
_NON_NUMERIC_RE = re.compile(r"[^\d.\-]")

_DATE_INPUTS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
)
_MONTHS_SHORT = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_MONTHS_LONG = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_TRUE_VALUES = ("true", "1", "yes", "on")


def is_html(content: str | None) -> bool:
    return bool(content) and _HTML_RE.search(content) is not None


def to_fraction(value: float, precision: int = 16) -> str:
    """小数转分数（如 2.5 → 2 1/2）"""
    whole = math.floor(value)
    decimal = value - whole
    if abs(decimal) < 0.0001:
        return str(whole)

    numerator = math.floor(decimal * precision + 0.5)
    denominator = precision
    divisor = math.gcd(numerator, denominator)
    numerator //= divisor
    denominator //= divisor

    if numerator == denominator:
        return str(whole + 1)
    if numerator == 0:
        return str(whole)
    return f"{numerator}/{denominator}" if whole == 0 else f"{whole} {numerator}/{denominator}"


def to_title_case(text: str) -> str:
    return _WORD_RE.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)


def _apply_casing(text: str, casing: str) -> str:
    if casing == "upper":
        return text.upper()
    if casing == "lower":
        return text.lower()
    if casing == "title":
        return to_title_case(text)
    return text


def _apply_casing_to_html(markup: str, casing: str) -> str:
    """只改变标签之外的文本"""
    parts = _TAG_SPLIT_RE.split(markup)
    return "".join(p if p.startswith("<") else _apply_casing(p, casing) for p in parts)


def _parse_date(content: str) -> datetime | None:
    text = content.strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATE_INPUTS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def format_date(value: datetime, date_format: str) -> str:
    if date_format == "DD/MM/YYYY":
        return value.strftime("%d/%m/%Y")
    if date_format == "YYYY-MM-DD":
        return value.strftime("%Y-%m-%d")
    if date_format == "MMM D, YYYY":
        return f"{_MONTHS_SHORT[value.month - 1]} {value.day}, {value.year}"
    if date_format == "MMMM D, YYYY":
        return f"{_MONTHS_LONG[value.month - 1]} {value.day}, {value.year}"
    return f"{value.month}/{value.day}/{value.year}"


def _format_number(content: str, fmt: ElementFormat) -> str:
    cleaned = _NON_NUMERIC_RE.sub("", content)
    try:
        number = float(cleaned)
    except ValueError:
        return content

    if fmt.use_fractions:
        result = to_fraction(number, fmt.fraction_precision)
    else:
        result = f"{number:.{fmt.decimal_places}f}"

    if fmt.unit:
        result = f"${result}" if fmt.unit == "$" else f"{result} {fmt.unit}"
    return result


def format_content(content: str | None, fmt: ElementFormat | None = None) -> str:
    """按 format 配置格式化内容"""
    if not content:
        return ""
    if fmt is None:
        return content

    if fmt.data_type == "number":
        return _format_number(content, fmt)

    if fmt.data_type == "date":
        parsed = _parse_date(content)
        return format_date(parsed, fmt.date_format) if parsed else content

    if fmt.data_type == "boolean":
        if content.strip().lower() in _TRUE_VALUES:
            return fmt.true_label or "Yes"
        return fmt.false_label or "No"

    text = content
    if fmt.casing != "none":
        text = _apply_casing_to_html(text, fmt.casing) if is_html(text) else _apply_casing(text, fmt.casing)

    if fmt.list_style != "none" and not is_html(text):
        items = [line for line in text.split("\n") if line.strip()]
        if items:
            tag = "ol" if fmt.list_style == "decimal" else "ul"
            body = "".join(f"<li>{html.escape(item)}</li>" for item in items)
            return f"<{tag}>{body}</{tag}>"

    return text
