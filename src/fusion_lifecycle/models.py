"""Pydantic models for the Fusion REST API wire format.

These models provide:
1. Type-safe JSON parsing of API responses
2. Validation at the boundary (unknown fields are ignored, missing
   optional fields default to empty values)
3. Clean serialization of POST and PATCH bodies (None fields are dropped)
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Base Models
# =============================================================================


class WireModel(BaseModel):
    """Base for every response model."""

    model_config = {"extra": "ignore", "populate_by_name": True}


class RequestBody(BaseModel):
    """Base for POST and PATCH bodies."""

    model_config = {"extra": "forbid"}

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON object sent on the wire."""
        return self.model_dump(mode="json", exclude_none=True)


class ResourceReference(WireModel):
    """Link from one resource to another."""

    id: str = ""
    name: str = ""
    kind: str = ""
    self_link: str = ""


# =============================================================================
# Operations
# =============================================================================


class OperationStatus(str, Enum):
    """Operation status strings returned by the API."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    COMPLETED = "Completed"
    FAILED = "Failed"


TERMINAL_STATUSES = frozenset(
    {OperationStatus.SUCCEEDED.value, OperationStatus.COMPLETED.value, OperationStatus.FAILED.value}
)
SUCCESS_STATUSES = frozenset({OperationStatus.SUCCEEDED.value, OperationStatus.COMPLETED.value})


class OperationError(WireModel):
    """Failure details attached to an operation in status Failed."""

    message: str = ""
    pure_code: str = ""
    http_code: int = 0


class OperationResult(WireModel):
    """Success details attached to an operation."""

    resource: ResourceReference = Field(default_factory=ResourceReference)


class Operation(WireModel):
    """An asynchronous action tracked by the server.

    Status is kept as a plain string: the server is authoritative and a
    value outside OperationStatus is treated as non-terminal.
    """

    id: str = ""
    name: str = ""
    request_type: str = ""
    status: str = ""
    retry_in: int = Field(0, ge=0)
    created_at: int = 0
    result: OperationResult | None = None
    error: OperationError | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def succeeded(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @property
    def is_null(self) -> bool:
        """True for the all-empty value a failed submit call leaves behind."""
        return not self.id and not self.status and self.retry_in == 0

    @property
    def error_message(self) -> str:
        return self.error.message if self.error else ""

    @property
    def result_resource_id(self) -> str:
        if self.result is None:
            return ""
        return self.result.resource.id

    def refresh_from(self, latest: Operation) -> None:
        """Overwrite every field with the values of a newer snapshot."""
        for name in type(self).model_fields:
            setattr(self, name, getattr(latest, name))


class ModelError(WireModel):
    """Structured error document returned with non-2xx responses."""

    message: str = ""
    pure_code: str = ""
    http_code: int = 0


class ErrorResponse(WireModel):
    error: ModelError


# =============================================================================
# Shared PATCH value wrappers
# =============================================================================


class NullableString(RequestBody):
    value: str


class NullableSize(RequestBody):
    value: int


class NullableBoolean(RequestBody):
    value: bool


# =============================================================================
# Volumes
# =============================================================================


class Iscsi(WireModel):
    iqn: str = ""
    addresses: list[str] = Field(default_factory=list)


class Target(WireModel):
    iscsi: Iscsi | None = None


class Volume(WireModel):
    id: str = ""
    name: str = ""
    display_name: str = ""
    size: int = 0
    serial_number: str = ""
    created_at: int = 0
    tenant: ResourceReference = Field(default_factory=ResourceReference)
    tenant_space: ResourceReference = Field(default_factory=ResourceReference)
    storage_class: ResourceReference = Field(default_factory=ResourceReference)
    placement_group: ResourceReference = Field(default_factory=ResourceReference)
    protection_policy: ResourceReference | None = None
    host_access_policies: list[ResourceReference] = Field(default_factory=list)
    target: Target | None = None


class VolumePost(RequestBody):
    name: str
    display_name: str | None = None
    size: int
    storage_class: str
    placement_group: str
    protection_policy: str | None = None
    source_link: str | None = None


class VolumePatch(RequestBody):
    display_name: NullableString | None = None
    size: NullableSize | None = None
    storage_class: NullableString | None = None
    placement_group: NullableString | None = None
    protection_policy: NullableString | None = None
    host_access_policies: NullableString | None = None
    source_volume_snapshot_link: NullableString | None = None


# =============================================================================
# Placement groups, availability zones, snapshots
# =============================================================================


class PlacementEngine(str, Enum):
    HEURISTICS = "heuristics"
    PURE1META = "pure1meta"


class PlacementGroup(WireModel):
    id: str = ""
    name: str = ""
    display_name: str = ""
    tenant: ResourceReference = Field(default_factory=ResourceReference)
    tenant_space: ResourceReference = Field(default_factory=ResourceReference)
    availability_zone: ResourceReference = Field(default_factory=ResourceReference)
    storage_service: ResourceReference = Field(default_factory=ResourceReference)
    placement_engine: str | None = None


class PlacementGroupPost(RequestBody):
    name: str
    display_name: str | None = None
    region: str
    availability_zone: str
    storage_service: str
    placement_engine: PlacementEngine | None = None


class PlacementGroupPatch(RequestBody):
    display_name: NullableString | None = None


class AvailabilityZone(WireModel):
    id: str = ""
    name: str = ""
    region: ResourceReference = Field(default_factory=ResourceReference)


class Snapshot(WireModel):
    id: str = ""
    name: str = ""
    display_name: str = ""


class SnapshotList(WireModel):
    count: int = 0
    items: list[Snapshot] = Field(default_factory=list)


# =============================================================================
# Tenant spaces
# =============================================================================


class TenantSpace(WireModel):
    id: str = ""
    name: str = ""
    display_name: str = ""
    tenant: ResourceReference = Field(default_factory=ResourceReference)


class TenantSpacePost(RequestBody):
    name: str
    display_name: str | None = None


class TenantSpacePatch(RequestBody):
    display_name: NullableString | None = None


# =============================================================================
# Host access policies
# =============================================================================


class HostAccessPolicy(WireModel):
    id: str = ""
    name: str = ""
    display_name: str = ""
    iqn: str = ""
    personality: str = ""


class HostAccessPoliciesPost(RequestBody):
    name: str
    display_name: str | None = None
    iqn: str
    personality: str
