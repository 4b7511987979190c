"""
目录结构规划单元测试

每个模块完成后必须运行：pytest backend/tests/unit/test_planner.py -v
"""

import pytest

from pagebind.catalog import CatalogStructurePlanner, resolve_title_column
from pagebind.models import CatalogSection, CatalogSections, DataSet, SectionType


class TestResolveTitleColumn:
    """标题列回退规则测试"""

    def test_synonym_match(self):
        """测试同义词优先"""
        assert resolve_title_column(["SKU", "Name", "Price"]) == "Name"

    def test_synonym_case_insensitive(self):
        """测试同义词忽略大小写和空格"""
        assert resolve_title_column(["SKU", " Product Name "]) == " Product Name "

    def test_group_field_first(self):
        """测试首列为分组字段时取第二列"""
        assert resolve_title_column(["GroupCode", "Value"], "GroupCode") == "Value"

    def test_first_header(self):
        """测试回退到首列"""
        assert resolve_title_column(["SKU", "Price"]) == "SKU"

    def test_empty(self):
        """测试无表头"""
        assert resolve_title_column([]) is None


class TestCatalogStructurePlanner:
    """结构规划器测试"""

    def test_row_order(self, catalog_sections, product_dataset):
        """测试条目顺序：封面 → 目录 → 章节/产品 → 封底"""
        plan = CatalogStructurePlanner().plan(catalog_sections, product_dataset, "Category")
        kinds = [item.kind for item in plan.structure]
        assert kinds == [
            SectionType.COVER,
            SectionType.TOC,
            SectionType.CHAPTER,
            SectionType.PRODUCT,
            SectionType.PRODUCT,
            SectionType.CHAPTER,
            SectionType.PRODUCT,
            SectionType.PRODUCT,
            SectionType.PRODUCT,
            SectionType.BACK,
        ]
        assert [item.page for item in plan.structure] == list(range(1, 11))
        assert plan.total_pages == 10

    def test_chapter_dividers(self, catalog_sections, product_dataset):
        """测试 G 个连续分组只生成 G 个章节页"""
        plan = CatalogStructurePlanner().plan(catalog_sections, product_dataset, "Category")
        assert plan.chapter_count == 2
        assert plan.product_count == 5
        assert [i.group for i in plan.structure if i.kind == SectionType.CHAPTER] == ["Chairs", "Tables"]

    def test_non_contiguous_groups(self, catalog_sections):
        """测试分组不连续时每次变化都生成章节页"""
        dataset = DataSet(
            headers=["Category", "Name"],
            rows=[{"Category": g, "Name": str(i)} for i, g in enumerate(["A", "B", "A"])],
        )
        plan = CatalogStructurePlanner().plan(catalog_sections, dataset, "Category")
        assert plan.chapter_count == 3

    def test_page_map(self, catalog_sections, product_dataset):
        """测试页码映射与产品页一一对应、严格递增"""
        plan = CatalogStructurePlanner().plan(catalog_sections, product_dataset, "Category")
        pages = [entry.page for entry in plan.page_map]
        products = [item.page for item in plan.structure if item.kind == SectionType.PRODUCT]
        assert pages == products
        assert all(a < b for a, b in zip(pages, pages[1:]))
        assert plan.page_map[0].title == "Arm Chair"
        assert plan.page_map[0].group == "Chairs"

    def test_missing_title_fallback(self, catalog_sections, product_dataset):
        """测试标题为空时回退为 Item N"""
        plan = CatalogStructurePlanner().plan(catalog_sections, product_dataset, "Category")
        assert plan.page_map[4].title == "Item 5"

    def test_no_grouping(self, catalog_sections, product_dataset):
        """测试无分组字段时不生成章节页"""
        plan = CatalogStructurePlanner().plan(catalog_sections, product_dataset)
        assert plan.chapter_count == 0
        assert all(entry.group is None for entry in plan.page_map)

    def test_empty_sections_skipped(self, product_dataset):
        """测试空分节不生成条目"""
        plan = CatalogStructurePlanner().plan(CatalogSections(), product_dataset)
        assert [item.kind for item in plan.structure] == [SectionType.PRODUCT] * 5
        assert plan.page_map[0].page == 1

    def test_toc_reserves_pages(self, catalog_sections, product_dataset):
        """测试目录预留多页页码但只有一个目录条目"""
        plan = CatalogStructurePlanner().plan(catalog_sections, product_dataset, "Category", toc_pages=3)
        toc_items = [item for item in plan.structure if item.kind == SectionType.TOC]
        assert len(toc_items) == 1
        assert plan.toc_pages == 3
        chapter = next(item for item in plan.structure if item.kind == SectionType.CHAPTER)
        assert chapter.page == 5

    def test_chapter_design_override(self, catalog_sections, product_dataset, make_element):
        """测试分组专属章节设计"""
        special = CatalogSection(elements=[make_element("special", "text")])
        sections = catalog_sections.model_copy(update={"chapter_designs": {"Tables": special}})
        plan = CatalogStructurePlanner().plan(sections, product_dataset, "Category")
        chapters = [item for item in plan.structure if item.kind == SectionType.CHAPTER]
        assert chapters[0].section.elements[0].id == "chapter-title"
        assert chapters[1].section.elements[0].id == "special"

    @pytest.mark.parametrize("title_field,expected", [("SKU", "C-1"), (None, "Arm Chair")])
    def test_explicit_title_field(self, catalog_sections, product_dataset, title_field, expected):
        """测试显式标题列优先"""
        plan = CatalogStructurePlanner().plan(catalog_sections, product_dataset, title_field=title_field)
        assert plan.page_map[0].title == expected
