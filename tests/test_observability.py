"""
Tests for observability — logging setup and level resolution.
"""

import logging

import pytest

from mintsetup.core.observability.logging_config import resolve_level, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    def test_precedence(self, monkeypatch):
        monkeypatch.delenv("MINTSETUP_LOG_LEVEL", raising=False)
        assert resolve_level(debug=True, verbose=True, quiet=True) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"
        assert resolve_level() == "WARNING"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("MINTSETUP_LOG_LEVEL", "INFO")
        assert resolve_level() == "INFO"
        assert resolve_level(quiet=True) == "ERROR"


class TestSetupLogging:
    def test_console_level(self, monkeypatch):
        monkeypatch.delenv("MINTSETUP_LOG_FILE", raising=False)
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert root.handlers[0].level == logging.INFO

    def test_invalid_level_falls_back(self, monkeypatch):
        monkeypatch.delenv("MINTSETUP_LOG_FILE", raising=False)
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_replaces_handlers(self, monkeypatch):
        monkeypatch.delenv("MINTSETUP_LOG_FILE", raising=False)
        setup_logging("WARNING")
        setup_logging("WARNING")
        assert len(logging.getLogger().handlers) == 1

    def test_log_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MINTSETUP_LOG_FILE_LEVEL", raising=False)
        log_file = tmp_path / "logs" / "mintsetup.log"
        setup_logging("WARNING", log_file=str(log_file))

        root = logging.getLogger()
        assert root.level == logging.INFO
        logging.getLogger("mintsetup.test").info("CMD apt-get update")
        for handler in root.handlers:
            handler.flush()
        assert "CMD apt-get update" in log_file.read_text()

    def test_log_file_from_environment(self, tmp_path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("MINTSETUP_LOG_FILE", str(log_file))
        monkeypatch.setenv("MINTSETUP_LOG_FILE_LEVEL", "DEBUG")
        setup_logging("ERROR")
        assert logging.getLogger().level == logging.DEBUG
        assert log_file.exists()

    def test_third_party_quieted(self, monkeypatch):
        monkeypatch.delenv("MINTSETUP_LOG_FILE", raising=False)
        setup_logging("INFO")
        assert logging.getLogger("asyncio").level == logging.WARNING
