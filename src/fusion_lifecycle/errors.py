"""Error taxonomy for the operation lifecycle.

Transport errors are azure-core exceptions (AzureError and subclasses)
raised by the transport; they are never wrapped so callers can match on
status codes. Everything the lifecycle itself decides is a FusionError:

    FusionError
    ├── PolicyViolationError      local precondition, no network side effects
    │   ├── ImmutableFieldError
    │   ├── UnsupportedOperationError
    │   └── InvalidRecordError
    ├── OperationFailedError      operation reached status Failed
    │   ├── PatchSequenceError    one patch of an update sequence failed
    │   └── CleanupFailedError    a pre-delete cleanup step failed
    ├── InvalidOperationError     null operation handle handed to the poller
    └── CredentialError           token could not be produced locally
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from azure.core.exceptions import HttpResponseError
from pydantic import ValidationError

from .models import ErrorResponse, ModelError

if TYPE_CHECKING:
    from .models import Operation

logger = logging.getLogger(__name__)


class FusionError(Exception):
    """Base class for lifecycle errors."""

    pass


class PolicyViolationError(FusionError):
    """Raised when a request is rejected locally before any network call."""

    pass


class ImmutableFieldError(PolicyViolationError):
    """Raised when an update tries to change fields fixed at creation."""

    def __init__(self, kind: str, fields: Iterable[str]) -> None:
        self.kind = kind
        self.fields = tuple(sorted(fields))
        super().__init__(
            f"attempting to update an immutable field of {kind}: {', '.join(self.fields)}"
        )


class UnsupportedOperationError(PolicyViolationError):
    """Raised when a resource kind does not support a lifecycle action."""

    def __init__(self, action: str, kind: str) -> None:
        self.action = action
        self.kind = kind
        super().__init__(f"unsupported operation: {action} {kind}")


class InvalidRecordError(PolicyViolationError):
    """Raised when a declarative record is missing or has malformed fields."""

    pass


class OperationFailedError(FusionError):
    """Raised when an operation reaches status Failed.

    Carries the final operation snapshot so the server's message, code
    and HTTP status stay available to the caller.
    """

    def __init__(self, message: str, operation: Operation) -> None:
        self.operation = operation
        super().__init__(message)

    @classmethod
    def from_operation(cls, operation: Operation, action: str) -> OperationFailedError:
        return cls(
            f"{action} failed: {operation.error_message or 'operation failed'} "
            f"(operation {operation.id})",
            operation,
        )

    @property
    def server_message(self) -> str:
        return self.operation.error_message


class PatchSequenceError(OperationFailedError):
    """Raised when one patch in an ordered update sequence fails.

    Patches before ``index`` remain applied; nothing after it was attempted.
    """

    def __init__(self, index: int, total: int, operation: Operation, patch: Any) -> None:
        self.index = index
        self.total = total
        self.patch = patch
        super().__init__(
            f"Operation failed Message:{operation.error_message} ID:{operation.id} "
            f"(patch {index + 1} of {total}; earlier patches remain applied)",
            operation,
        )


class CleanupFailedError(OperationFailedError):
    """Raised when a pre-delete cleanup step fails. Cleanup is never retried."""

    def __init__(self, description: str, operation: Operation) -> None:
        self.description = description
        super().__init__(
            f"failed to {description} as part of delete: "
            f"{operation.error_message or 'operation failed'} (operation {operation.id})",
            operation,
        )


class InvalidOperationError(FusionError, ValueError):
    """Raised when the poller is handed an operation with no id, status or retry hint."""

    pass


class CredentialError(FusionError):
    """Raised when an access token cannot be produced from local key material."""

    pass


def to_model_error(err: BaseException) -> ModelError | None:
    """Decode the structured error document carried by a transport error.

    Returns:
        The decoded (message, pure_code, http_code), or None when the error
        has no response or the body is not a Fusion error document.
    """
    if not isinstance(err, HttpResponseError) or err.response is None:
        return None

    try:
        body = err.response.text()
    except Exception:  # noqa: BLE001
        return None

    try:
        return ErrorResponse.model_validate_json(body).error
    except (ValidationError, ValueError, TypeError):
        return None


def describe_error(err: BaseException, action: str = "") -> str:
    """Produce the single human-readable message for any lifecycle error."""
    model_error = to_model_error(err)
    if model_error is None:
        logger.warning(
            "Error while converting error",
            extra={"error_message": str(err), "operation": action},
        )
        return str(err)

    logger.error(
        "REST error",
        extra={
            "operation": action,
            "error_message": model_error.message,
            "pure_code": model_error.pure_code,
            "http_code": model_error.http_code,
        },
    )
    return model_error.message or str(err)
