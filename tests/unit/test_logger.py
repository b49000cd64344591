"""
Tests for indexer logging setup.
"""

import logging

import pytest

from equiclear.utils.logger import (
    LOG_FILE,
    SubsystemFilter,
    get_logger,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    setup_logging(logging.WARNING)


class TestResolveLevel:

    @pytest.mark.parametrize("value,expected", [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        (" warning ", logging.WARNING),
        (logging.ERROR, logging.ERROR),
    ])
    def test_known_levels(self, value, expected):
        assert resolve_level(value) == expected

    @pytest.mark.parametrize("value", ["verbose", "", "Level 5"])
    def test_unknown_level_rejected(self, value):
        with pytest.raises(ValueError):
            resolve_level(value)


class TestSetupLogging:

    def test_console_only_by_default(self):
        setup_logging("INFO")
        handlers = logging.getLogger("equiclear").handlers

        assert len(handlers) == 1
        assert not any(isinstance(h, logging.FileHandler) for h in handlers)
        assert logging.getLogger("equiclear").level == logging.INFO

    def test_file_log_tagged(self, tmp_path):
        setup_logging("DEBUG", log_dir=str(tmp_path / "logs"))
        get_logger("sync").info("Synced 3 events")

        handlers = logging.getLogger("equiclear").handlers
        file_handlers = [h for h in handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        file_handlers[0].flush()

        content = (tmp_path / "logs" / LOG_FILE).read_text()
        assert "[sync]" in content
        assert "Synced 3 events" in content

    def test_reconfigure_replaces_handlers(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path))
        setup_logging("INFO")

        assert len(logging.getLogger("equiclear").handlers) == 1


class TestSubsystemFilter:

    def test_strips_root_prefix(self):
        record = logging.LogRecord("equiclear.storage.sqlite", logging.INFO, "", 0, "msg", None, None)
        assert SubsystemFilter().filter(record)
        assert record.subsystem == "[storage.sqlite]"

    def test_foreign_logger_kept(self):
        record = logging.LogRecord("other", logging.INFO, "", 0, "msg", None, None)
        SubsystemFilter().filter(record)
        assert record.subsystem == "[other]"
