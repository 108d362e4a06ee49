"""Unit tests for logging configuration."""

import logging

import pytest
import structlog

from referencer.observability.logger import (
    TRACE,
    VERBOSE,
    LogContext,
    _context_processor,
    _log_context,
    add_context,
    clear_all_context,
    configure_logging,
    get_log_level,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_all_context()
    yield
    clear_all_context()


class TestLoggingConfiguration:
    """Test logging configuration functions."""

    @pytest.mark.parametrize(
        "level,expected",
        [
            ("TRACE", TRACE),
            ("DEBUG", logging.DEBUG),
            ("VERBOSE", VERBOSE),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
        ],
    )
    def test_levels(self, level, expected):
        configure_logging(level=level)

        assert logging.getLogger().level == expected

    def test_custom_level_names_registered(self):
        assert logging.getLevelName(TRACE) == "TRACE"
        assert logging.getLevelName(VERBOSE) == "VERBOSE"

    def test_unknown_level_falls_back_to_info(self):
        assert get_log_level("chatty") == logging.INFO
        assert get_log_level("debug") == logging.DEBUG

    def test_json_logs(self):
        configure_logging(json_logs=True)

        assert structlog.get_logger("test") is not None

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "referencer.log"

        configure_logging(level="INFO", log_file=log_file)
        logging.getLogger("referencer.test").info("written")

        assert log_file.exists()
        assert "written" in log_file.read_text()


class TestLogContext:
    def test_context_manager_scopes_values(self):
        with LogContext(import_id="a1b2"):
            assert _log_context.get() == {"import_id": "a1b2"}
            with LogContext(kind="item"):
                assert _log_context.get() == {"import_id": "a1b2", "kind": "item"}
            assert _log_context.get() == {"import_id": "a1b2"}

        assert _log_context.get() == {}

    def test_add_and_clear_context(self):
        add_context(import_id="a1b2")
        add_context(kind="host")
        assert _log_context.get() == {"import_id": "a1b2", "kind": "host"}

        clear_all_context()
        assert _log_context.get() == {}

    def test_processor_injects_context(self):
        with LogContext(import_id="a1b2"):
            event = _context_processor(None, "info", {"event": "Batch loaded"})

        assert event == {"event": "Batch loaded", "import_id": "a1b2"}
