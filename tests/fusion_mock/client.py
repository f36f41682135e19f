"""In-memory Fusion client.

Scripted stand-in for fusion_lifecycle.transport.FusionClient:

- ``submit`` pops the next scripted result (an Operation, or an exception
  to raise) and records the WriteRequest it was given
- ``get_operation`` pops the next scripted snapshot for that operation id
- typed reads serve resources from dictionaries keyed by id and raise
  ResourceNotFoundError for unknown ids
"""

from __future__ import annotations

from collections import deque
from typing import Any

from azure.core.exceptions import ResourceNotFoundError

from fusion_lifecycle.models import (
    AvailabilityZone,
    HostAccessPolicy,
    Operation,
    OperationError,
    OperationResult,
    PlacementGroup,
    ResourceReference,
    Snapshot,
    SnapshotList,
    TenantSpace,
    Volume,
)
from fusion_lifecycle.resource import WriteRequest

from .responses import FakeResponse


def make_operation(
    op_id: str = "op-1",
    status: str = "Pending",
    *,
    retry_in: int = 0,
    request_type: str = "CreateVolume",
    resource_id: str = "",
    error_message: str = "",
    pure_code: str = "",
    http_code: int = 0,
) -> Operation:
    """Build an operation snapshot."""
    result = None
    if resource_id:
        result = OperationResult(resource=ResourceReference(id=resource_id))
    error = None
    if error_message or pure_code or http_code:
        error = OperationError(message=error_message, pure_code=pure_code, http_code=http_code)
    return Operation(
        id=op_id,
        request_type=request_type,
        status=status,
        retry_in=retry_in,
        result=result,
        error=error,
    )


def not_found(what: str) -> ResourceNotFoundError:
    return ResourceNotFoundError(
        response=FakeResponse(status_code=404, reason="Not Found", body=f"{what} not found")
    )


class MockFusionClient:
    """Scripted Fusion client for driver, sequencer and poller tests."""

    def __init__(self) -> None:
        self.submitted: list[WriteRequest] = []
        self.polled: list[str] = []
        self.closed = False

        self._submit_results: deque[Operation | Exception] = deque()
        self._snapshots: dict[str, deque[Operation | Exception]] = {}

        self.volumes: dict[str, Volume] = {}
        self.placement_groups: dict[str, PlacementGroup] = {}
        self.tenant_spaces: dict[str, TenantSpace] = {}
        self.host_access_policies: dict[str, HostAccessPolicy] = {}
        self.availability_zones: dict[str, AvailabilityZone] = {}
        self.snapshots: dict[tuple[str, str, str], list[Snapshot]] = {}
        self.snapshot_queries: list[dict[str, Any]] = []

    # -------------------------------------------------------------------------
    # Scripting
    # -------------------------------------------------------------------------

    def script_submit(self, *results: Operation | Exception) -> None:
        """Queue results for the next ``submit`` calls, in order."""
        self._submit_results.extend(results)

    def script_operation(self, op_id: str, *snapshots: Operation | Exception) -> None:
        """Queue snapshots returned by ``get_operation(op_id)``, in order."""
        self._snapshots.setdefault(op_id, deque()).extend(snapshots)

    def script_success(self, op_id: str, resource_id: str = "") -> None:
        """Submit returns a running operation which succeeds on first poll."""
        self.script_submit(make_operation(op_id, "Running", retry_in=10))
        self.script_operation(op_id, make_operation(op_id, "Succeeded", resource_id=resource_id))

    def script_failure(self, op_id: str, message: str) -> None:
        """Submit returns a running operation which fails on first poll."""
        self.script_submit(make_operation(op_id, "Running", retry_in=10))
        self.script_operation(
            op_id,
            make_operation(op_id, "Failed", error_message=message, pure_code="CONFLICT", http_code=409),
        )

    # -------------------------------------------------------------------------
    # FusionClient surface
    # -------------------------------------------------------------------------

    def submit(self, request: WriteRequest) -> Operation:
        self.submitted.append(request)
        if not self._submit_results:
            raise AssertionError(f"unexpected submit: {request}")
        result = self._submit_results.popleft()
        if isinstance(result, Exception):
            raise result
        return result.model_copy(deep=True)

    def get_operation(self, operation_id: str) -> Operation:
        self.polled.append(operation_id)
        queue = self._snapshots.get(operation_id)
        if not queue:
            raise AssertionError(f"unexpected poll of operation {operation_id}")
        result = queue.popleft()
        if isinstance(result, Exception):
            raise result
        return result.model_copy(deep=True)

    def get_volume_by_id(self, volume_id: str) -> Volume:
        return self._lookup(self.volumes, volume_id, "volume")

    def get_placement_group_by_id(self, placement_group_id: str) -> PlacementGroup:
        return self._lookup(self.placement_groups, placement_group_id, "placement group")

    def get_tenant_space_by_id(self, tenant_space_id: str) -> TenantSpace:
        return self._lookup(self.tenant_spaces, tenant_space_id, "tenant space")

    def get_host_access_policy_by_id(self, policy_id: str) -> HostAccessPolicy:
        return self._lookup(self.host_access_policies, policy_id, "host access policy")

    def get_availability_zone_by_id(self, availability_zone_id: str) -> AvailabilityZone:
        return self._lookup(self.availability_zones, availability_zone_id, "availability zone")

    def list_snapshots(
        self, tenant_name: str, tenant_space_name: str, *, placement_group: str | None = None
    ) -> SnapshotList:
        self.snapshot_queries.append(
            {
                "tenant_name": tenant_name,
                "tenant_space_name": tenant_space_name,
                "placement_group": placement_group,
            }
        )
        items = self.snapshots.get((tenant_name, tenant_space_name, placement_group or ""), [])
        return SnapshotList(count=len(items), items=list(items))

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> MockFusionClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Assertions
    # -------------------------------------------------------------------------

    @property
    def submit_count(self) -> int:
        return len(self.submitted)

    def pending_snapshots(self, op_id: str) -> int:
        return len(self._snapshots.get(op_id, ()))

    @staticmethod
    def _lookup(store: dict[str, Any], key: str, what: str) -> Any:
        if key not in store:
            raise not_found(f"{what} {key}")
        return store[key].model_copy(deep=True)
