"""
打包器 - 页面文档 → 完整HTML + manifest

职责：
1. 把若干页包装成完整HTML文档（@page 尺寸 = 画布尺寸，逐页分页）
2. 生成 worker 渲染参数（scale / colorModel）
3. 生成 manifest.json（输入、分块引用、告警）

测试要点：
- test_wrap_pages: 页面容器与 @page 尺寸
- test_render_params: 数字版/印刷版参数
- test_manifest_structure: manifest结构
"""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..config import get_config
from ..models import ExportMode
from ..render import google_fonts_query

if TYPE_CHECKING:
    from ..config import RuntimeConfig
    from ..models import BuildReport, ExportJob, PageDocument


class MarkupPackager:
    """标记打包器"""

    def __init__(self, config: RuntimeConfig | None = None):
        self.config = config or get_config()

    def render_params(self, mode: ExportMode, width: float, height: float, job_type: str) -> dict[str, Any]:
        """worker 渲染参数"""
        if mode == ExportMode.PRINT:
            scale, color_model = self.config.images.print_scale, "cmyk"
        else:
            scale, color_model = self.config.images.digital_scale, "rgb"
        return {
            "width": width,
            "height": height,
            "scale": scale,
            "colorModel": color_model,
            "type": job_type,
        }

    def wrap(self, pages: list[PageDocument], width: float, height: float, title: str = "Export") -> str:
        """页面 → 完整HTML文档"""
        body = "".join(f'<div class="page-container">{page.html}</div>' for page in pages)
        return (
            "<!DOCTYPE html>\n"
            "<html>\n"
            "<head>\n"
            '<meta charset="utf-8">\n'
            f"<title>{html.escape(title)}</title>\n"
            f'<link href="https://fonts.googleapis.com/css2?{google_fonts_query()}&display=swap" rel="stylesheet">\n'
            "<style>\n"
            f"@page {{ size: {width}px {height}px; margin: 0; }}\n"
            "body { margin: 0; padding: 0; box-sizing: border-box; }\n"
            "* { box-sizing: inherit; }\n"
            f".page-container {{ width: {width}px; height: {height}px; page-break-after: always; "
            "page-break-inside: avoid; position: relative; overflow: hidden; }\n"
            ".page-container:last-child { page-break-after: auto; }\n"
            "</style>\n"
            "</head>\n"
            f"<body>{body}</body>\n"
            "</html>\n"
        )

    def generate_manifest(self, job: ExportJob, build: BuildReport | None = None) -> Path:
        """生成 manifest.json（写入任务目录）"""
        manifest = {
            "schema_version": "1.0",
            "job_id": job.id,
            "job_type": job.type.value,
            "user_id": job.user_id,
            "project_name": job.project_name,
            "inputs": {
                "page_count": job.page_count,
                "request_id": job.request_id,
                "render": {k: v for k, v in job.payload.items() if k not in ("items", "htmlStoragePath")},
            },
            "chunks": [chunk.model_dump(mode="json") for chunk in job.chunks],
            "single_document": job.payload.get("htmlStoragePath"),
            "failed_pages": build.failed_pages if build else [],
            "flags": job.flags,
            "timestamps": {
                "created_at": job.created_at.isoformat(),
                "updated_at": job.updated_at.isoformat(),
            },
        }

        job_dir = self.config.get_job_dir(job.id)
        job_dir.mkdir(parents=True, exist_ok=True)
        manifest_path = job_dir / "manifest.json"
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, ensure_ascii=False, indent=2)
        return manifest_path
