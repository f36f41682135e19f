"""Process wiring: structured logging and client construction."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

from .auth import Pure1SelfSignedCredential
from .config import ProviderConfig
from .tracing import TRACE
from .transport import FusionClient

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int | str = logging.INFO, stream: TextIO | None = None) -> None:
    """Configure structured logging with JSON output.

    ``level`` accepts a level number or name, including ``TRACE``.
    """
    if isinstance(level, str):
        level = TRACE if level.upper() == "TRACE" else logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    # Replace a handler installed by an earlier call instead of stacking them
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from the Azure SDK pipeline
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_client(config: ProviderConfig) -> FusionClient:
    """Construct an authenticated FusionClient from validated configuration."""
    logger = logging.getLogger(__name__)
    logger.debug("Using Fusion", extra={"host": config.host})

    credential = Pure1SelfSignedCredential(
        config.issuer_id,
        config.private_key_file,
        endpoint=config.authentication_endpoint,
        retry_delay_ms=config.token_retry_delay_ms,
        retry_backoff=config.token_retry_backoff,
        retry_attempts=config.token_retry_attempts,
    )
    return FusionClient(config.host, credential, timeout=config.request_timeout_seconds)
