"""
模拟目录分页：读取设计文档与数据表，输出结构规划（不渲染、不提交）。
用于检查章节分组、目录页数与产品页码回填是否符合预期。

用法：
  python tools/simulate_catalog_pagination.py --design designs/catalog.json --data data/products.xlsx
  python tools/simulate_catalog_pagination.py --design designs/catalog.json --data data/products.csv --group Category --out plan.json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from pagebind.config import TemplateLoader, get_config, setup_logging
from pagebind.interfaces import PagebindError
from pagebind.loaders import load_dataset
from pagebind.models import ExportOptions
from pagebind.pipeline import DocumentAssembler


def simulate(design_path: Path, data_path: Path, group_by_field: str | None = None) -> dict:
    design = TemplateLoader.load(design_path)
    if not design.is_catalog:
        raise SystemExit(f"not a catalog design: {design_path}")

    dataset = load_dataset(data_path)
    options = ExportOptions(
        project_name=design.name,
        canvas_width=design.canvas_width,
        canvas_height=design.canvas_height,
        group_by_field=group_by_field,
    )
    plan, toc_chunks = DocumentAssembler(config=get_config()).plan_catalog(design.get_sections(), dataset, options)

    return {
        "design": str(design_path),
        "data": str(data_path),
        "rows": len(dataset),
        "title_column": plan.title_column,
        "toc_pages": plan.toc_pages,
        "toc_rows_per_page": [len(rows) for rows in toc_chunks],
        "chapters": plan.chapter_count,
        "products": plan.product_count,
        "total_pages": plan.total_pages,
        "structure": [
            {"page": item.page, "kind": item.kind.value, "group": item.group}
            for item in plan.structure
        ],
        "page_map": [entry.model_dump() for entry in plan.page_map],
    }


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--design", required=True)
    ap.add_argument("--data", required=True)
    ap.add_argument("--group", default="")
    ap.add_argument("--out", default="")
    args = ap.parse_args()
    setup_logging()

    try:
        data = simulate(Path(args.design), Path(args.data), args.group or None)
    except PagebindError as e:
        raise SystemExit(f"[ERROR] {e}")

    if args.out:
        Path(args.out).write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        print(f"[OK] wrote: {args.out} ({data['total_pages']} pages)")
    else:
        print(json.dumps(data, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
