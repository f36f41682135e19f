"""Structured trace events for operations and errors.

Trace events are a side channel: nothing here may raise or influence
control flow. They are emitted at a custom TRACE level below DEBUG so
that production logs stay quiet unless explicitly requested.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import Operation

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger(__name__)


def trace_operation(operation: Operation | None, user_message: str) -> None:
    """Emit a trace_operation event with the current operation snapshot."""
    if operation is None:
        logger.log(TRACE, "trace_operation", extra={"user_message": user_message, "op_id": None})
        return

    logger.log(
        TRACE,
        "trace_operation",
        extra={
            "user_message": user_message,
            "op_id": operation.id,
            "op_request_type": operation.request_type,
            "op_status": operation.status,
            "op_retry_in": operation.retry_in,
            "op_error_dump": repr(operation.error),
        },
    )


def trace_error(err: BaseException | None) -> None:
    """Walk an exception chain and emit one trace_error event per link.

    HTTP details (status, reason, request URL and body) are added for
    exceptions that carry an azure-core response.
    """
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        logger.log(
            TRACE,
            "trace_error",
            extra={
                "error_message": str(err),
                "error_type": type(err).__name__,
                "error_module": type(err).__module__,
                "error_dump": repr(err),
            },
        )

        response = getattr(err, "response", None)
        if hasattr(err, "response"):
            logger.log(TRACE, "trace_error", extra=_response_details(response))

        err = err.__cause__ or err.__context__


def _response_details(response: Any) -> dict[str, Any]:
    if response is None:
        return {"response": None}

    details: dict[str, Any] = {
        "response_status_code": getattr(response, "status_code", None),
        "response_status": getattr(response, "reason", None),
    }
    request = getattr(response, "request", None)
    if request is not None:
        details["request_method"] = getattr(request, "method", None)
        details["request_url"] = getattr(request, "url", None)
    try:
        details["body"] = response.text()
    except Exception:  # noqa: BLE001 - body may be unreadable or already consumed
        details["body"] = None
    return details
