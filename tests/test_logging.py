"""Tests for structured logging and trace events."""

import io
import json
import logging

import pytest
from azure.core.exceptions import HttpResponseError
from fusion_mock import error_response, make_operation

from fusion_lifecycle.main import JsonFormatter, setup_logging
from fusion_lifecycle.tracing import TRACE, trace_error, trace_operation


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_includes_extras(self) -> None:
        """Test that extra fields become JSON keys."""
        record = logging.LogRecord(
            "fusion_lifecycle.driver", logging.INFO, __file__, 1, "Lifecycle call finished", (), None
        )
        record.resource_kind = "volume"
        record.success = True

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "Lifecycle call finished"
        assert data["level"] == "INFO"
        assert data["logger"] == "fusion_lifecycle.driver"
        assert data["resource_kind"] == "volume"
        assert data["success"] is True
        assert "msg" not in data
        assert data["timestamp"].endswith("Z")


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_trace_level_by_name(self, restore_root_logger) -> None:
        """Test that TRACE is accepted and trace events are emitted."""
        stream = io.StringIO()
        setup_logging("trace", stream=stream)

        trace_operation(make_operation("op-1", "Running", retry_in=10), "waitOnOperation")

        event = json.loads(stream.getvalue().splitlines()[-1])
        assert logging.getLogger().level == TRACE
        assert event["level"] == "TRACE"
        assert event["op_id"] == "op-1"
        assert event["user_message"] == "waitOnOperation"

    def test_repeated_setup_replaces_handler(self, restore_root_logger) -> None:
        """Test that calling setup twice does not duplicate output."""
        stream = io.StringIO()
        setup_logging("INFO", stream=io.StringIO())
        setup_logging("INFO", stream=stream)

        logging.getLogger("fusion_lifecycle.test").info("once")

        assert len(stream.getvalue().splitlines()) == 1

    def test_unknown_level(self, restore_root_logger) -> None:
        """Test that an unknown level name is rejected."""
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging("CHATTY")


class TestTraceError:
    """Tests for trace_error()."""

    def test_walks_cause_chain_with_response_details(self, caplog) -> None:
        """Test one event per chained exception plus HTTP details."""
        transport = HttpResponseError(response=error_response(503, "backend down"))
        try:
            try:
                raise transport
            except HttpResponseError as e:
                raise RuntimeError("token exchange failed") from e
        except RuntimeError as outer:
            err = outer

        with caplog.at_level(TRACE, logger="fusion_lifecycle.tracing"):
            trace_error(err)

        types = [r.error_type for r in caplog.records if hasattr(r, "error_type")]
        assert types == ["RuntimeError", "HttpResponseError"]
        statuses = [r.response_status_code for r in caplog.records if hasattr(r, "response_status_code")]
        assert statuses == [503]

    def test_none_is_ignored(self, caplog) -> None:
        """Test that tracing nothing emits nothing."""
        with caplog.at_level(TRACE, logger="fusion_lifecycle.tracing"):
            trace_error(None)

        assert caplog.records == []
