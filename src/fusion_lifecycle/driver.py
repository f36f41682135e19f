"""Generic CRUD driver.

One ResourceDriver runs every lifecycle action for one resource kind:

    create: adapter.prepare_create -> submit -> wait -> set id -> read
    read:   adapter.read_resource (no operation involved)
    update: adapter.prepare_update -> execute_patches -> read
    delete: cleanup requests (each submitted and waited on) -> delete -> wait
    import: read, for a record not tracked before

The driver never raises. Every outcome becomes a LifecycleResult whose
diagnostics say whether retrying the whole call is safe:

- transport errors (azure-core AzureError) are retryable
- operations that reached Failed, local policy violations and anything
  unexpected are terminal
- a resource missing on read or import is reported as ``not_found`` and
  the record id is cleared, with no diagnostic
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError

from .adapters import build_adapter
from .errors import (
    CleanupFailedError,
    FusionError,
    InvalidRecordError,
    OperationFailedError,
    PolicyViolationError,
    describe_error,
)
from .operations import wait_on_operation
from .patches import execute_patches
from .resource import ResourceAdapter, ResourceData
from .tracing import trace_error, trace_operation
from .transport import FusionClient

logger = logging.getLogger(__name__)


class LifecycleAction(str, Enum):
    """Lifecycle actions a driver can run."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


@dataclass(frozen=True)
class Diagnostic:
    """One user-visible problem.

    Attributes:
        summary: Single human-readable message (server message when known).
        detail: Extra context for operators.
        retryable: True when the failure was transport-level and the whole
            lifecycle call can be safely retried.
    """

    summary: str
    detail: str = ""
    retryable: bool = False


@dataclass
class LifecycleResult:
    """Outcome of one lifecycle call."""

    kind: str
    action: LifecycleAction
    resource_id: str = ""
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    not_found: bool = False
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        return not self.diagnostics

    @property
    def retryable(self) -> bool:
        """True if there are diagnostics and every one of them is retryable."""
        return bool(self.diagnostics) and all(d.retryable for d in self.diagnostics)


class ResourceDriver:
    """Runs create/read/update/delete/import for one resource kind."""

    def __init__(
        self,
        adapter: ResourceAdapter,
        client: FusionClient,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._adapter = adapter
        self._client = client
        self._sleep = sleep

    @property
    def kind(self) -> str:
        return self._adapter.kind

    @property
    def adapter(self) -> ResourceAdapter:
        return self._adapter

    def create(self, record: ResourceData) -> LifecycleResult:
        return self._run(LifecycleAction.CREATE, record, self._create)

    def read(self, record: ResourceData) -> LifecycleResult:
        return self._run(LifecycleAction.READ, record, self._read)

    def update(self, record: ResourceData) -> LifecycleResult:
        return self._run(LifecycleAction.UPDATE, record, self._update)

    def delete(self, record: ResourceData) -> LifecycleResult:
        return self._run(LifecycleAction.DELETE, record, self._delete)

    def import_resource(self, record: ResourceData) -> LifecycleResult:
        return self._run(LifecycleAction.IMPORT, record, self._read)

    def run(self, action: LifecycleAction, record: ResourceData) -> LifecycleResult:
        """Dispatch ``action`` by value."""
        match action:
            case LifecycleAction.CREATE:
                return self.create(record)
            case LifecycleAction.READ:
                return self.read(record)
            case LifecycleAction.UPDATE:
                return self.update(record)
            case LifecycleAction.DELETE:
                return self.delete(record)
            case LifecycleAction.IMPORT:
                return self.import_resource(record)
        raise ValueError(f"Unknown lifecycle action: {action}")

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _create(self, record: ResourceData) -> None:
        request = self._adapter.prepare_create(record)
        logger.debug(
            "Post",
            extra={"path": request.path, "body": request.body.to_wire() if request.body else None},
        )
        operation = self._client.submit(request)

        if not wait_on_operation(operation, self._client, sleep=self._sleep):
            error = operation.error
            logger.error(
                "REST create failed",
                extra={
                    "error_message": operation.error_message,
                    "pure_code": error.pure_code if error else "",
                    "http_code": error.http_code if error else 0,
                },
            )
            raise OperationFailedError.from_operation(operation, "create")

        resource_id = operation.result_resource_id
        if not resource_id:
            raise OperationFailedError(
                f"create succeeded but operation {operation.id} carried no resource id",
                operation,
            )
        logger.debug("created successfully", extra={"resource_id": resource_id})
        record.set_id(resource_id)
        self._adapter.read_resource(self._client, record)

    def _read(self, record: ResourceData) -> None:
        if not record.id:
            raise InvalidRecordError(f"cannot read {self.kind} without a resource id")
        self._adapter.read_resource(self._client, record)

    def _update(self, record: ResourceData) -> None:
        requests = self._adapter.prepare_update(self._client, record)
        execute_patches(self._client.submit, requests, self._client, sleep=self._sleep)
        self._adapter.read_resource(self._client, record)

    def _delete(self, record: ResourceData) -> None:
        plan = self._adapter.prepare_delete(self._client, record)

        for step in plan.cleanup:
            logger.debug("Pre-delete cleanup", extra={"step": step.description})
            operation = self._client.submit(step)
            trace_operation(operation, step.description)
            if not wait_on_operation(operation, self._client, sleep=self._sleep):
                logger.error(
                    "Pre-delete cleanup failed",
                    extra={"step": step.description, "error_message": operation.error_message},
                )
                raise CleanupFailedError(step.description, operation)

        operation = self._client.submit(plan.final)
        if not wait_on_operation(operation, self._client, sleep=self._sleep):
            logger.error(
                "REST delete failed",
                extra={"error_message": operation.error_message, "op_id": operation.id},
            )
            raise OperationFailedError.from_operation(operation, "delete")
        record.set_id("")

    # -------------------------------------------------------------------------
    # Outcome classification
    # -------------------------------------------------------------------------

    def _run(
        self,
        action: LifecycleAction,
        record: ResourceData,
        step: Callable[[ResourceData], None],
    ) -> LifecycleResult:
        result = LifecycleResult(kind=self.kind, action=action, resource_id=record.id)
        logger.debug(
            "resource",
            extra={"resource_kind": self.kind, "action": action.value, "resource_id": record.id},
        )

        try:
            step(record)
        except ResourceNotFoundError as e:
            if action in (LifecycleAction.READ, LifecycleAction.IMPORT):
                logger.info(
                    "Resource not found, treating as deleted",
                    extra={"resource_kind": self.kind, "resource_id": record.id},
                )
                result.not_found = True
                record.set_id("")
            else:
                result.diagnostics.append(self._transport_diagnostic(e, action))
        except PolicyViolationError as e:
            logger.error(
                "Policy violation, no request sent",
                extra={"resource_kind": self.kind, "action": action.value, "error": str(e)},
            )
            result.diagnostics.append(Diagnostic(summary=str(e)))
        except OperationFailedError as e:
            error = e.operation.error
            result.diagnostics.append(
                Diagnostic(
                    summary=str(e),
                    detail=(
                        f"operation {e.operation.id} ({e.operation.request_type}) status "
                        f"{e.operation.status}; pure_code={error.pure_code if error else ''} "
                        f"http_code={error.http_code if error else 0}"
                    ),
                )
            )
        except FusionError as e:
            logger.error("Lifecycle error", extra={"action": action.value, "error": str(e)})
            result.diagnostics.append(Diagnostic(summary=str(e)))
        except AzureError as e:
            trace_error(e)
            result.diagnostics.append(self._transport_diagnostic(e, action))
        except Exception as e:
            logger.exception("Unexpected error during lifecycle call")
            result.diagnostics.append(
                Diagnostic(summary=str(e) or type(e).__name__, detail=type(e).__name__)
            )

        result.resource_id = record.id
        result.end_time = datetime.now(UTC)
        logger.info(
            "Lifecycle call finished",
            extra={
                "resource_kind": self.kind,
                "action": action.value,
                "resource_id": result.resource_id,
                "success": result.success,
                "not_found": result.not_found,
                "duration_seconds": result.duration_seconds,
            },
        )
        return result

    @staticmethod
    def _transport_diagnostic(err: AzureError, action: LifecycleAction) -> Diagnostic:
        detail = type(err).__name__
        if isinstance(err, HttpResponseError) and err.status_code is not None:
            detail = f"{detail} (HTTP {err.status_code})"
        return Diagnostic(summary=describe_error(err, action.value), detail=detail, retryable=True)


def build_driver(
    kind: str,
    client: FusionClient,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ResourceDriver:
    """Construct the driver for ``kind`` with its own adapter instance."""
    return ResourceDriver(build_adapter(kind), client, sleep=sleep)
