"""
占位符替换 - {{Field}} → 记录值

未解析的占位符原样保留，永不报错
"""

from __future__ import annotations

import re
from datetime import date

TOKEN_RE = re.compile(r"{{(.*?)}}")
_ILLEGAL_FILENAME_RE = re.compile(r"[^a-z0-9\s\-_.]", re.IGNORECASE)
_DATE_TOKEN_RE = re.compile(r"{{Date}}", re.IGNORECASE)


def substitute_tokens(text: str, record: dict[str, str]) -> str:
    """替换全部 {{Field}}（字段名去首尾空格；记录中没有的保持原样）"""
    if not text:
        return ""

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        value = record.get(name)
        return match.group(0) if value is None else str(value)

    return TOKEN_RE.sub(_replace, text)


def has_tokens(text: str | None) -> bool:
    return bool(text) and TOKEN_RE.search(text) is not None


def build_filename(pattern: str, record: dict[str, str], today: date | None = None) -> str:
    """按文件名模式生成文件名（缺失字段替换为空，非法字符替换为 _）"""
    today = today or date.today()
    if not pattern.strip():
        return f"specsheet-{today.isoformat()}"

    name = _DATE_TOKEN_RE.sub(today.isoformat(), pattern)
    name = TOKEN_RE.sub(lambda m: str(record.get(m.group(1).strip()) or ""), name)
    return _ILLEGAL_FILENAME_RE.sub("_", name)
