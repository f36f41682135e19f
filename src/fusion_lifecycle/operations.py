"""Operation poller.

Most Fusion API calls that change the system return an Operation in
status Pending or Running. The poller GETs the operation, sleeping for
the server-supplied retry hint between polls, until it reaches a
terminal status:

    Pending/Running ──(retry_in ms)──> GET /resources/operations/{id} ──> ...
                                            │
                       Succeeded/Completed ─┴─ Failed

The operation passed in is updated in place with every snapshot fetched,
so after a transport error it still holds the last known state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from .errors import InvalidOperationError
from .models import Operation, OperationStatus
from .tracing import trace_error, trace_operation

logger = logging.getLogger(__name__)

__all__ = ["OperationReader", "OperationStatus", "wait_on_operation"]


class OperationReader(Protocol):
    """Anything able to fetch the latest snapshot of an operation."""

    def get_operation(self, operation_id: str) -> Operation: ...


def wait_on_operation(
    operation: Operation,
    client: OperationReader,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Block until ``operation`` reaches a terminal status.

    Args:
        operation: Operation returned by a mutating call. Updated in place.
        client: Transport used to re-fetch the operation by id.
        sleep: Blocking sleep taking seconds (injectable for tests).

    Returns:
        True if the operation Succeeded or Completed, False if it Failed.
        A False return is an application-level failure; inspect
        ``operation.error`` for the server's message.

    Raises:
        InvalidOperationError: If ``operation`` is a null handle. No
            request is made.
        AzureError: If fetching a snapshot fails. ``operation`` then holds
            the last snapshot that was fetched successfully.
    """
    trace_operation(operation, "waitOnOperation")
    logger.debug(
        "Waiting for operation",
        extra={
            "op_type": operation.request_type,
            "op_id": operation.id,
            "op_status": operation.status,
            "op_retry_in": operation.retry_in,
        },
    )

    if operation.is_null:
        logger.error("waitOnOperation with null op")
        raise InvalidOperationError("waitOnOperation with null op")

    while not operation.is_terminal:
        sleep(operation.retry_in / 1000)
        try:
            latest = client.get_operation(operation.id)
        except Exception as e:
            trace_error(e)
            raise
        trace_operation(latest, "waitOnOperation")
        operation.refresh_from(latest)
        logger.debug(
            "Polled operation",
            extra={
                "op_id": operation.id,
                "op_status": operation.status,
                "op_retry_in": operation.retry_in,
            },
        )

    if operation.status == OperationStatus.FAILED.value:
        logger.error(
            "waitOnOperation FAILED with Error",
            extra={
                "op_id": operation.id,
                "op_request_type": operation.request_type,
                "error_message": operation.error_message,
                "pure_code": operation.error.pure_code if operation.error else "",
                "http_code": operation.error.http_code if operation.error else 0,
            },
        )
        return False

    trace_operation(operation, "waitOnOperation Succeeded")
    return True
