# =============================================================================
# tests/unit/test_errors_and_logging.py
# Unit Tests for the Error Hierarchy, Error Boundary and Logging Helpers
# =============================================================================

from datetime import date
import logging

import pytest

from aviation_core.errors import (
    AviationCoreError,
    ConfigurationError,
    ErrorContext,
    LocalStoreError,
    RecordNotFoundError,
    RemoteSyncError,
    handle_error,
)
from aviation_core.logging import LogContext, setup_logging
from aviation_core.logging.config import resolve_level, sync_log_path


class TestExceptions:
    """Test codes and details of the exception hierarchy"""

    def test_base_error_defaults(self):
        error = AviationCoreError("something broke")

        assert error.code == "AV_000"
        assert error.recoverable
        assert str(error) == "[AV_000] something broke"

    def test_not_found_is_a_store_error(self):
        error = RecordNotFoundError("documents", "doc-1")

        assert isinstance(error, LocalStoreError)
        assert error.code == "STORE_002"
        assert error.details == {"table": "documents", "record_id": "doc-1"}

    def test_store_error_default_code(self):
        assert LocalStoreError("bad", table="places").code == "STORE_001"

    def test_remote_error_to_dict(self):
        error = RemoteSyncError("down", table="manuals", operation="select")

        data = error.to_dict()

        assert data["error_type"] == "RemoteSyncError"
        assert data["code"] == "SYNC_001"
        assert data["details"] == {"table": "manuals", "operation": "select"}
        assert data["recoverable"] is True

    def test_configuration_error_is_not_recoverable(self):
        assert not ConfigurationError("bad").recoverable


class TestErrorHandling:
    """Test handle_error and the ErrorContext boundary"""

    def test_handle_error_for_core_error(self):
        result = handle_error(RecordNotFoundError("places", "p1"), log_error=False)

        assert result["code"] == "STORE_002"
        assert result["recoverable"] is True

    def test_handle_error_for_plain_exception(self):
        result = handle_error(ValueError("nope"), log_error=False)

        assert result["code"] == "UNKNOWN"
        assert result["message"] == "nope"

    def test_error_is_logged_with_code(self, caplog):
        with caplog.at_level(logging.ERROR):
            handle_error(RemoteSyncError("down"))

        assert "[SYNC_001] down" in caplog.text

    def test_recoverable_context_suppresses_and_records(self):
        with ErrorContext("Sync pass") as ctx:
            raise RuntimeError("boom")

        assert isinstance(ctx.error, RuntimeError)

    def test_unrecoverable_context_propagates(self):
        with pytest.raises(RuntimeError):
            with ErrorContext("Startup", recoverable=False):
                raise RuntimeError("boom")

    def test_context_never_swallows_keyboard_interrupt(self):
        with pytest.raises(KeyboardInterrupt):
            with ErrorContext("Sync pass"):
                raise KeyboardInterrupt

    def test_clean_context_has_no_error(self):
        with ErrorContext("Sync pass") as ctx:
            pass

        assert ctx.error is None


class TestLogging:
    """Test logging setup and timing context"""

    def test_setup_logging_accepts_level_names(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("DEBUG")

            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)

    def test_log_context_reports_timing(self, caplog):
        logger = logging.getLogger("aviation_core.test")

        with caplog.at_level(logging.INFO, logger="aviation_core.test"):
            with LogContext(logger, "Sync pass") as ctx:
                pass

        assert "Sync pass... started" in caplog.text
        assert "Sync pass... completed" in caplog.text
        assert ctx.elapsed >= 0

    def test_log_context_does_not_suppress(self, caplog):
        logger = logging.getLogger("aviation_core.test")

        with pytest.raises(ValueError):
            with LogContext(logger, "Import"):
                raise ValueError("bad row")

        assert "Import... failed" in caplog.text

    def test_slow_operation_is_a_warning(self, caplog):
        logger = logging.getLogger("aviation_core.test")

        with caplog.at_level(logging.INFO, logger="aviation_core.test"):
            with LogContext(logger, "Sync pass", slow_after=-1):
                pass

        assert "Sync pass... completed slowly" in caplog.text
        assert caplog.records[-1].levelno == logging.WARNING

    def test_level_names_and_daily_log_file(self):
        assert resolve_level("warning") == logging.WARNING
        assert resolve_level("not-a-level") == logging.INFO
        assert resolve_level(logging.DEBUG) == logging.DEBUG
        assert sync_log_path(date(2024, 5, 1)).name == "sync_2024-05-01.log"
