"""Resource adapters, one per supported kind."""

from __future__ import annotations

from ..resource import ResourceAdapter
from .host_access_policy import HostAccessPolicyAdapter
from .placement_group import PlacementGroupAdapter
from .tenant_space import TenantSpaceAdapter
from .volume import VolumeAdapter

RESOURCE_KINDS = (
    VolumeAdapter.kind,
    PlacementGroupAdapter.kind,
    TenantSpaceAdapter.kind,
    HostAccessPolicyAdapter.kind,
)


def build_adapter(kind: str) -> ResourceAdapter:
    """Construct the adapter for ``kind``.

    Raises:
        ValueError: If ``kind`` is not one of RESOURCE_KINDS.
    """
    match kind:
        case "volume":
            return VolumeAdapter()
        case "placement_group":
            return PlacementGroupAdapter()
        case "tenant_space":
            return TenantSpaceAdapter()
        case "host_access_policy":
            return HostAccessPolicyAdapter()
        case _:
            raise ValueError(
                f"Unknown resource kind: {kind!r} (expected one of {', '.join(RESOURCE_KINDS)})"
            )


__all__ = [
    "RESOURCE_KINDS",
    "HostAccessPolicyAdapter",
    "PlacementGroupAdapter",
    "TenantSpaceAdapter",
    "VolumeAdapter",
    "build_adapter",
]
