"""
页面文档模型 - 单页可序列化输出

由页面渲染器生成，交给导出任务客户端打包/分块
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PageDocument(BaseModel):
    """单页文档"""
    page_number: int
    kind: str = "page"
    width: float
    height: float
    background_color: str = "#ffffff"
    html: str = ""

    # 目录/章节/产品页的附加信息
    group: str | None = None
    row_index: int | None = None

    # 渲染失败时以占位页替代
    failed: bool = False
    flags: list[str] = Field(default_factory=list)

    def add_flag(self, flag: str) -> None:
        """添加告警标记（不中断）"""
        if flag not in self.flags:
            self.flags.append(flag)


class BuildReport(BaseModel):
    """一次构建的结果（页面 + 告警）"""
    pages: list[PageDocument] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list)
    failed_pages: list[int] = Field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def add_flag(self, flag: str) -> None:
        if flag not in self.flags:
            self.flags.append(flag)
