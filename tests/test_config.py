"""Tests for configuration loading and logging set-up."""

import logging
import logging.handlers

import pytest

from epub_reader.config import ConfigManager
from epub_reader.logging_config import setup_logging


class TestConfigManager:

    def test_packaged_defaults(self):
        config = ConfigManager()
        assert config.get_page_config() == {"width": 600, "height": 800, "margin": 10}
        assert config.get_spine_config() == {"honor_linear": False}
        assert config.get_normalizer_config()["placeholder_scheme"] == "svgimage"
        assert config.get_logging_config()["version"] == 1

    def test_is_a_singleton(self):
        assert ConfigManager() is ConfigManager()

    def test_user_overrides_merge_per_section(self, isolated_config):
        (isolated_config / "reader.yml").write_text(
            "page:\n  width: 1024\nspine:\n  honor_linear: true\n", encoding="utf-8"
        )
        ConfigManager.reset()
        config = ConfigManager()
        assert config.get_page_config() == {"width": 1024, "height": 800, "margin": 10}
        assert config.get_spine_config()["honor_linear"] is True
        assert config.get_normalizer_config()["inline_media_type"] == "image/jpeg"

    def test_invalid_user_file_keeps_defaults(self, isolated_config):
        (isolated_config / "reader.yml").write_text("page: [unclosed\n", encoding="utf-8")
        ConfigManager.reset()
        assert ConfigManager().get_page_config()["width"] == 600

    def test_override_honor_linear_reaches_service(self, isolated_config):
        from epub_reader.core.services import DocumentService

        (isolated_config / "reader.yml").write_text("spine:\n  honor_linear: true\n", encoding="utf-8")
        ConfigManager.reset()
        assert DocumentService().container.honor_linear is True


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        package_logger = logging.getLogger("epub_reader")
        root = logging.getLogger()
        saved = (package_logger.handlers[:], package_logger.level, package_logger.propagate,
                 root.handlers[:], root.level)
        yield
        for handler in package_logger.handlers:
            if handler not in saved[0]:
                handler.close()
        package_logger.handlers[:] = saved[0]
        package_logger.setLevel(saved[1])
        package_logger.propagate = saved[2]
        root.handlers[:] = saved[3]
        root.setLevel(saved[4])

    def test_file_handler_uses_log_dir(self, tmp_path, monkeypatch):
        log_dir = tmp_path / "logs"
        monkeypatch.setenv("EPUB_READER_LOG_DIR", str(log_dir))
        monkeypatch.delenv("EPUB_READER_DEBUG", raising=False)
        monkeypatch.delenv("EPUB_READER_DEBUG_MODULES", raising=False)

        setup_logging()

        package_logger = logging.getLogger("epub_reader")
        assert package_logger.level == logging.INFO
        file_handlers = [
            h for h in package_logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename == str(log_dir / "app.log")

    def test_debug_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EPUB_READER_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("EPUB_READER_DEBUG", "true")

        setup_logging()

        assert logging.getLogger("epub_reader").level == logging.DEBUG
