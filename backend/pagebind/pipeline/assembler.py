"""
文档组装器 - 规划 → 重排 → 渲染，产出有序页面

职责：
1. 单份导出：按设计页顺序逐页重排、渲染（同一条记录）
2. 目录导出：预分页目录 → 结构规划 → 逐条目重排、渲染
3. 失败隔离：单页失败以占位页替代并记录告警；全部失败才中断

测试要点：
- test_build_single_multi_page: 多页单份导出
- test_build_catalog_order: 目录页序与页码
- test_toc_overflow_pages: 目录溢出时预留多页页码
- test_page_failure_placeholder: 单页失败 → 占位页 + 告警
- test_all_pages_fail: 全部失败抛出 LayoutError
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..catalog import CatalogStructurePlanner
from ..config import get_config
from ..interfaces import LayoutError, RenderError
from ..layout import ReflowEngine
from ..models import (
    BuildReport,
    CatalogPlan,
    PageDocument,
    SectionType,
    StructureItem,
)
from ..render import PageRenderer, RenderContext, paginate_toc
from .stages import ProgressCallback, StageEnum, report

if TYPE_CHECKING:
    from ..config import RuntimeConfig
    from ..models import CatalogSections, DataSet, Element, ExportOptions
    from ..render import TocRow

logger = logging.getLogger(__name__)


class DocumentAssembler:
    """文档组装器（每次构建独立，不共享可变状态）"""

    def __init__(
        self,
        reflow: ReflowEngine | None = None,
        renderer: PageRenderer | None = None,
        planner: CatalogStructurePlanner | None = None,
        config: RuntimeConfig | None = None,
    ):
        self.config = config or get_config()
        self.reflow = reflow or ReflowEngine()
        self.renderer = renderer or PageRenderer()
        self.planner = planner or CatalogStructurePlanner()

    def canvas_size(self, options: ExportOptions) -> tuple[float, float]:
        width = options.canvas_width or self.config.export.canvas_width
        height = options.canvas_height or self.config.export.canvas_height
        return width, height

    # ------------------------------------------------------------------
    # 单份导出
    # ------------------------------------------------------------------

    def build_single(
        self,
        elements: list[Element],
        dataset: DataSet,
        record: dict[str, str],
        options: ExportOptions,
        progress_cb: ProgressCallback | None = None,
    ) -> BuildReport:
        """渲染所有设计页（pageIndex 0..pageCount-1）"""
        width, height = self.canvas_size(options)
        page_count = max(1, options.page_count)
        result = BuildReport()

        report(progress_cb, StageEnum.PLAN, message=f"单份导出 {page_count} 页")
        for page_index in range(page_count):
            page_elements = [el for el in elements if el.page_index == page_index]
            ctx = RenderContext(
                page_number=page_index + 1,
                width=width,
                height=height,
                record=record,
                dataset=dataset,
                background_color=options.background_color,
                mode=options.mode,
                licensed=options.licensed,
            )
            self._build_page(result, page_elements, ctx, page_index)
            report(progress_cb, StageEnum.REFLOW_RENDER, page_index + 1, page_count)

        self._check_result(result)
        return result

    # ------------------------------------------------------------------
    # 目录导出
    # ------------------------------------------------------------------

    def plan_catalog(
        self,
        sections: CatalogSections,
        dataset: DataSet,
        options: ExportOptions,
    ) -> tuple[CatalogPlan, list[list[TocRow]]]:
        """结构规划（含目录预分页）"""
        toc_element = sections.toc.find_toc_element()
        group_by_field = options.group_by_field
        title_field = options.title_field
        if toc_element is not None:
            if toc_element.toc_settings and not group_by_field:
                group_by_field = toc_element.toc_settings.group_by_field
            title_field = title_field or toc_element.data_binding

        plan = self.planner.plan(
            sections,
            dataset,
            group_by_field=group_by_field,
            title_field=title_field,
            toc_pages=1,
        )
        if toc_element is None or not sections.toc.has_content:
            return plan, []

        # 先按一页目录规划得到条目数，再按实际目录页数重排页码
        toc_chunks = paginate_toc(toc_element, plan.page_map)
        if len(toc_chunks) > 1:
            plan = self.planner.plan(
                sections,
                dataset,
                group_by_field=group_by_field,
                title_field=title_field,
                toc_pages=len(toc_chunks),
            )
            toc_chunks = paginate_toc(toc_element, plan.page_map)
            logger.info(f"目录溢出为 {len(toc_chunks)} 页")
        return plan, toc_chunks

    def build_catalog(
        self,
        sections: CatalogSections,
        dataset: DataSet,
        options: ExportOptions,
        progress_cb: ProgressCallback | None = None,
    ) -> tuple[BuildReport, CatalogPlan]:
        """构建完整目录"""
        width, height = self.canvas_size(options)
        plan, toc_chunks = self.plan_catalog(sections, dataset, options)
        report(
            progress_cb,
            StageEnum.PLAN,
            message=f"目录规划完成: {plan.total_pages} 页",
        )

        result = BuildReport()
        total = len(plan.structure)
        for done, item in enumerate(plan.structure, start=1):
            if item.kind == SectionType.TOC:
                for offset, rows in enumerate(toc_chunks or [None]):
                    ctx = self._context(item, width, height, dataset, options, plan)
                    ctx.page_number = item.page + offset
                    ctx.toc_rows = rows
                    ctx.toc_first_page = offset == 0
                    self._build_page(result, item.section.elements, ctx, ctx.page_number - 1)
            else:
                ctx = self._context(item, width, height, dataset, options, plan)
                self._build_page(result, item.section.elements, ctx, item.page - 1)
            report(progress_cb, StageEnum.REFLOW_RENDER, done, total)

        self._check_result(result)
        logger.info(
            f"目录构建完成: {result.page_count} 页, 失败 {len(result.failed_pages)} 页"
        )
        return result, plan

    @staticmethod
    def _context(
        item: StructureItem,
        width: float,
        height: float,
        dataset: DataSet,
        options: ExportOptions,
        plan: CatalogPlan,
    ) -> RenderContext:
        record = dict(item.row or {})
        return RenderContext(
            page_number=item.page,
            width=width,
            height=height,
            record=record,
            dataset=dataset,
            background_color=item.section.background_color,
            kind=item.kind.value,
            group=item.group,
            row_index=item.row_index,
            mode=options.mode,
            licensed=options.licensed,
            page_map=plan.page_map,
        )

    # ------------------------------------------------------------------
    # 单页构建（失败隔离）
    # ------------------------------------------------------------------

    def _build_page(
        self,
        result: BuildReport,
        elements: list[Element],
        ctx: RenderContext,
        page_index: int,
    ) -> None:
        try:
            placed = self.reflow.apply(elements, ctx.dataset, ctx.record, page_index)
            page = self.renderer.render(placed, ctx)
        except (LayoutError, RenderError) as e:
            logger.error(f"第{ctx.page_number}页构建失败: {e}")
            page = self._placeholder(ctx)
            result.failed_pages.append(ctx.page_number)
            result.add_flag(f"页面构建失败:{ctx.page_number}")
            result.pages.append(page)
            return

        for flag in page.flags:
            result.add_flag(flag)
        result.pages.append(page)

    @staticmethod
    def _placeholder(ctx: RenderContext) -> PageDocument:
        """空白占位页（保留分节背景色，页码不变）"""
        page = PageDocument(
            page_number=ctx.page_number,
            kind=ctx.kind,
            width=ctx.width,
            height=ctx.height,
            background_color=ctx.background_color,
            group=ctx.group,
            row_index=ctx.row_index,
            failed=True,
        )
        page.html = (
            f'<div class="page placeholder" style="position: relative; width: {ctx.width}px; '
            f'height: {ctx.height}px; background-color: {ctx.background_color}"></div>'
        )
        page.add_flag("页面构建失败")
        return page

    @staticmethod
    def _check_result(result: BuildReport) -> None:
        if result.pages and len(result.failed_pages) == len(result.pages):
            raise LayoutError(f"全部 {len(result.pages)} 页构建失败")
