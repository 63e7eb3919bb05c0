"""Tests for logging configuration helpers."""

import json
import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

from static_server.bootstrap.logging_setup import (
    CorrelationIdFilter,
    JsonFormatter,
    configure_logging,
)


def _record(name: str = "static_server.server", msg: str = "format test") -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_configure_logging_json_stream_handler():
    """Stdout handler formats records as JSON with the project logger."""
    logger = configure_logging("DEBUG", "stdout")

    assert logger.logger.name == "static_server"
    assert logger.logger.level == logging.DEBUG
    assert logger.logger.propagate is False
    assert len(logger.logger.handlers) == 1

    handler = logger.logger.handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    assert isinstance(handler.formatter, JsonFormatter)
    record = _record()
    record.correlation_id = "test-id-123"
    record.component = "server"
    log_data = json.loads(handler.formatter.format(record))
    assert log_data["component"] == "server"
    assert log_data["correlation_id"] == "test-id-123"


def test_configure_logging_text_format():
    logger = configure_logging("INFO", "stdout", use_json=False)

    handler = logger.logger.handlers[0]
    record = _record(msg="plain text")
    record.correlation_id = "abc"
    formatted = handler.formatter.format(record)

    assert "[abc]" in formatted
    assert "static_server.server :: plain text" in formatted


def test_unknown_level_falls_back_to_info():
    logger = configure_logging("VERBOSE", "stdout")

    assert logger.logger.level == logging.INFO


def test_reconfiguring_replaces_handlers():
    configure_logging("INFO", "stdout")
    logger = configure_logging("INFO", "stdout")

    assert len(logger.logger.handlers) == 1


def test_configure_logging_file_destination(tmp_path: Path):
    """A nested file destination is created and receives JSON lines."""
    destination = tmp_path / "logs" / "server.log"
    logger = configure_logging("WARNING", destination.as_posix())

    handler = logger.logger.handlers[0]
    assert handler.baseFilename == destination.as_posix()

    logging.getLogger("static_server.bootstrap.resolver").warning(
        "header map file not found",
        extra={"event": "config_file_missing", "path": "./headers.yaml"},
    )
    handler.flush()

    lines = [json.loads(line) for line in destination.read_text().splitlines()]
    assert lines[-1]["event"] == "config_file_missing"
    assert lines[-1]["path"] == "./headers.yaml"
    assert lines[-1]["correlation_id"] == "-"


def test_correlation_id_filter_inserts_placeholder_when_missing():
    """Filter should default correlation_id to '-' for bare records."""
    record = _record(msg="missing id")

    assert not hasattr(record, "correlation_id")
    assert CorrelationIdFilter().filter(record)
    assert record.correlation_id == "-"


def test_configure_logging_emits_event():
    """configure_logging reports its own level and destination."""
    with patch("static_server.bootstrap.logging_setup._build_handler") as mock_build:
        mock_handler = MagicMock()
        mock_handler.level = logging.INFO
        mock_build.return_value = mock_handler

        configure_logging("INFO", None)

        record = mock_handler.handle.call_args[0][0]
        assert record.msg == "Logging configured"
        assert record.name == "static_server.logging"
        assert getattr(record, "event", None) == "logging_configured"
        assert getattr(record, "log_destination", None) == "stdout"
        assert getattr(record, "log_level", None) == "INFO"
