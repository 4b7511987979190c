"""
配置加载单元测试

每个模块完成后必须运行：pytest backend/tests/unit/test_config.py -v
"""

import json
import logging

import pytest

from pagebind.config import RuntimeConfig, TemplateLoader, get_config, setup_logging
from pagebind.interfaces import TemplateError


class TestRuntimeConfig:
    """运行期配置测试"""

    def test_defaults(self):
        """测试默认配置"""
        config = RuntimeConfig()
        assert config.export.chunk_size == 5
        assert config.polling.max_attempts == 150
        assert config.images.jpeg_quality == 75
        assert config.images.min_print_dpi == 295

    def test_from_yaml(self, tmp_path):
        """测试从YAML加载（{default: ...} 与普通值）"""
        path = tmp_path / "runtime.yaml"
        path.write_text(
            "runtime_options:\n"
            "  storage_dir: data\n"
            "  export:\n"
            "    chunk_size:\n"
            "      default: 8\n"
            "      desc: 分块页数\n"
            "    worker_url: http://worker:9000\n"
            "  polling:\n"
            "    max_attempts: 3\n",
            encoding="utf-8",
        )
        config = RuntimeConfig.from_yaml(path)
        assert config.export.chunk_size == 8
        assert config.export.worker_url == "http://worker:9000"
        assert config.polling.max_attempts == 3
        assert config.storage_dir == (tmp_path / "data").resolve()

    def test_missing_yaml_uses_defaults(self, tmp_path):
        """测试配置文件不存在时使用默认值"""
        config = RuntimeConfig.from_yaml(tmp_path / "missing.yaml")
        assert config.export.chunk_size == 5

    def test_env_override(self, monkeypatch):
        """测试环境变量覆盖"""
        monkeypatch.setenv("PAGEBIND_EXPORT__CHUNK_SIZE", "10")
        config = RuntimeConfig()
        assert config.export.chunk_size == 10

    def test_get_config_returns_active(self, runtime_config):
        """测试全局配置实例"""
        assert get_config() is runtime_config

    def test_job_dir(self, runtime_config):
        """测试任务目录"""
        assert runtime_config.get_job_dir("abc") == runtime_config.storage_dir / "jobs" / "abc"


class TestTemplateLoader:
    """设计文档加载器测试"""

    def test_load_catalog_json(self, tmp_path):
        """测试加载目录设计（camelCase）"""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({
            "name": "Spring",
            "type": "catalog",
            "canvasWidth": 800,
            "catalogSections": {
                "product": {
                    "elements": [{"id": "n", "type": "dataField", "dataBinding": "Name"}],
                    "backgroundColor": "#fafafa",
                },
            },
            "chapterDesigns": {"Tables": {"elements": []}},
        }), encoding="utf-8")

        design = TemplateLoader.reload(path)
        assert design.is_catalog
        assert design.canvas_width == 800
        sections = design.get_sections()
        assert sections.product.background_color == "#fafafa"
        assert sections.product.elements[0].data_binding == "Name"
        assert not sections.cover.has_content

    def test_elements_for_page(self, tmp_path):
        """测试按页取元素"""
        path = tmp_path / "single.yaml"
        path.write_text(
            "pageCount: 2\n"
            "elements:\n"
            "  - {id: a, type: text, pageIndex: 0}\n"
            "  - {id: b, type: text, pageIndex: 1}\n",
            encoding="utf-8",
        )
        design = TemplateLoader.reload(path)
        assert [el.id for el in design.elements_for_page(1)] == ["b"]

    def test_invalid_design(self, tmp_path):
        """测试格式错误"""
        path = tmp_path / "bad.yaml"
        path.write_text("elements:\n  - {id: a, type: hologram}\n", encoding="utf-8")
        with pytest.raises(TemplateError):
            TemplateLoader.reload(path)

    def test_missing_file(self, tmp_path):
        """测试文件不存在"""
        with pytest.raises(FileNotFoundError):
            TemplateLoader.reload(tmp_path / "nope.yaml")


class TestLogging:
    """日志配置测试"""

    def test_setup_logging_idempotent(self, runtime_config):
        """测试重复初始化不重复添加 handler"""
        logger = logging.getLogger("pagebind")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        setup_logging(runtime_config)
        count = len(logger.handlers)
        setup_logging(runtime_config)
        assert len(logger.handlers) == count
        assert (runtime_config.get_log_dir() / "pagebind.log").exists()

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
