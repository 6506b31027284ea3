"""
Unit tests for logging configuration and setup.

Tests setup_logging handlers, levels, formats and edge cases.
"""

import logging

import pytest

from main import DEFAULT_LOG_FORMAT, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Keep root logger state isolated between tests."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Test setup_logging function."""

    def test_basic_logging_config(self):
        setup_logging({"logging": {"level": "INFO", "format": DEFAULT_LOG_FORMAT}})

        root = logging.getLogger()
        assert root.level == logging.INFO
        stream_handlers = [h for h in root.handlers if isinstance(h, logging.StreamHandler)]
        assert len(stream_handlers) >= 1

    def test_level_is_case_insensitive(self):
        setup_logging({"logging": {"level": "debug"}})
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_level_falls_back_to_info(self):
        setup_logging({"logging": {"level": "CHATTY"}})
        assert logging.getLogger().level == logging.INFO

    def test_missing_section_uses_defaults(self):
        setup_logging({})
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert root.handlers[0].formatter._fmt == DEFAULT_LOG_FORMAT

    def test_format_without_timestamp_gets_one(self):
        setup_logging({"logging": {"format": "%(levelname)s %(message)s"}})
        assert logging.getLogger().handlers[0].formatter._fmt == "%(asctime)s - %(levelname)s %(message)s"

    def test_file_logging_enabled(self, tmp_path):
        log_file = tmp_path / "logs" / "budget.log"
        setup_logging({"logging": {"level": "INFO", "file": str(log_file)}})

        logging.getLogger("budgeting").info("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert "written to file" in log_file.read_text()

    def test_unwritable_log_file_is_not_fatal(self, tmp_path):
        # a directory cannot be opened as a log file
        setup_logging({"logging": {"file": str(tmp_path)}})

        handlers = logging.getLogger().handlers
        assert not any(isinstance(h, logging.FileHandler) for h in handlers)
        assert len(handlers) == 1
