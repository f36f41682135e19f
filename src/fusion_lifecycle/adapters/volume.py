"""Volume adapter.

Volumes live under a tenant space. Updates are ordered: a placement
group move first clears host access, moves, then reattaches the hosts,
since a volume cannot keep its host assignments across placement groups.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

from pydantic import Field, field_validator

from ..errors import ImmutableFieldError, PolicyViolationError
from ..models import NullableSize, NullableString, VolumePatch, VolumePost
from ..resource import (
    DeletePlan,
    RecordSchema,
    ResourceAdapter,
    ResourceData,
    WriteRequest,
    resource_path,
)

if TYPE_CHECKING:
    from ..transport import FusionClient

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("name", "tenant_name", "tenant_space_name")


class VolumeRecord(RecordSchema):
    """Declarative attributes of a volume."""

    name: str = Field(min_length=1)
    display_name: str | None = None
    size: int = Field(gt=0, description="Size in bytes")
    tenant_name: str = Field(min_length=1)
    tenant_space_name: str = Field(min_length=1)
    storage_class_name: str = Field(min_length=1)
    # Changing this generates a new IQN and disrupts initiator access
    placement_group_name: str = Field(min_length=1)
    protection_policy_name: str | None = None
    host_names: list[str] = Field(default_factory=list)

    @field_validator("host_names")
    @classmethod
    def unique_host_names(cls, v: list[str]) -> list[str]:
        return sorted(set(v))


class VolumeAdapter(ResourceAdapter):
    kind: ClassVar[str] = "volume"
    schema: ClassVar[type[RecordSchema]] = VolumeRecord
    computed: ClassVar[frozenset[str]] = frozenset({"display_name"})

    def _volumes_path(self, record: ResourceData, *extra: str) -> str:
        return resource_path(
            "tenants",
            record.get_str("tenant_name"),
            "tenant-spaces",
            record.get_str("tenant_space_name"),
            "volumes",
            *extra,
        )

    def prepare_create(self, record: ResourceData) -> WriteRequest:
        name = record.get_str("name")
        body = VolumePost(
            name=name,
            display_name=record.get_str("display_name", name),
            size=record.get_int("size"),
            storage_class=record.get_str("storage_class_name"),
            placement_group=record.get_str("placement_group_name"),
            protection_policy=record.get_str("protection_policy_name") or None,
        )
        return WriteRequest("POST", self._volumes_path(record), body, f"create volume {name}")

    def read_resource(self, client: FusionClient, record: ResourceData) -> None:
        volume = client.get_volume_by_id(record.id)

        record.set("host_names", sorted(hap.name for hap in volume.host_access_policies))
        record.set("tenant_name", volume.tenant.name)
        record.set("tenant_space_name", volume.tenant_space.name)
        record.set("storage_class_name", volume.storage_class.name)
        record.set("placement_group_name", volume.placement_group.name)
        record.set("name", volume.name)
        record.set("display_name", volume.display_name)
        record.set("size", volume.size)
        record.set("serial_number", volume.serial_number)
        record.set("created_at", volume.created_at)
        if volume.protection_policy is not None:
            record.set("protection_policy_name", volume.protection_policy.name)
        if volume.target is not None and volume.target.iscsi is not None:
            record.set("target_iscsi_iqn", volume.target.iscsi.iqn)
            record.set("target_iscsi_addresses", list(volume.target.iscsi.addresses))

    def prepare_update(self, client: FusionClient, record: ResourceData) -> list[WriteRequest]:
        changed_immutable = [f for f in IMMUTABLE_FIELDS if record.has_change(f)]
        if changed_immutable:
            raise ImmutableFieldError(self.kind, changed_immutable)

        if record.has_change("size"):
            self._check_not_shrinking(record)

        path = self._volumes_path(record, record.get_str("name"))
        patches: list[VolumePatch] = []

        def trace(parameter: str, value: object, **fields: object) -> None:
            logger.debug(
                "update",
                extra={
                    "resource": self.kind,
                    "parameter": parameter,
                    "to": value,
                    "patch_idx": len(patches),
                    **fields,
                },
            )

        if record.has_change("display_name"):
            display_name = record.get_str("display_name")
            trace("display_name", display_name)
            patches.append(VolumePatch(display_name=NullableString(value=display_name)))

        if record.has_change("protection_policy_name"):
            policy = record.get_str("protection_policy_name")
            trace("protection_policy_name", policy)
            patches.append(VolumePatch(protection_policy=NullableString(value=policy)))

        readd_hosts = record.has_change("placement_group_name")
        if readd_hosts:
            trace("host_names", "", reason="temporary removal of hosts for placement group change")
            patches.append(VolumePatch(host_access_policies=NullableString(value="")))

        if record.has_change("storage_class_name") or readd_hosts:
            patch = VolumePatch()
            if record.has_change("storage_class_name"):
                storage_class = record.get_str("storage_class_name")
                trace("storage_class_name", storage_class)
                patch.storage_class = NullableString(value=storage_class)
            if readd_hosts:
                placement_group = record.get_str("placement_group_name")
                trace("placement_group_name", placement_group)
                patch.placement_group = NullableString(value=placement_group)
            patches.append(patch)

        if record.has_change("host_names") or readd_hosts:
            hosts = ",".join(sorted(record.get_list("host_names")))
            trace("host_names", hosts, readded=readd_hosts)
            patches.append(VolumePatch(host_access_policies=NullableString(value=hosts)))

        if record.has_change("size"):
            size = record.get_int("size")
            trace("size", size)
            patches.append(VolumePatch(size=NullableSize(value=size)))

        return [
            WriteRequest("PATCH", path, patch, f"update volume {record.get_str('name')}")
            for patch in patches
        ]

    def _check_not_shrinking(self, record: ResourceData) -> None:
        prior_size = record.get_prior("size")
        new_size = record.get_int("size")
        if isinstance(prior_size, int) and new_size < prior_size:
            raise PolicyViolationError(
                f"volume {record.get_str('name')} cannot shrink from {prior_size} to {new_size} bytes"
            )

    def prepare_delete(self, client: FusionClient, record: ResourceData) -> DeletePlan:
        name = record.get_str("name")
        path = self._volumes_path(record, name)
        clear_hosts = WriteRequest(
            "PATCH",
            path,
            VolumePatch(host_access_policies=NullableString(value="")),
            "clear out host assignments",
        )
        return DeletePlan(
            final=WriteRequest("DELETE", path, None, f"delete volume {name}"),
            cleanup=(clear_hosts,),
        )
