"""Host access policy adapter.

Host access policies are global (not scoped to a tenant) and cannot be
updated in place; changing one means deleting and recreating it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Literal

from pydantic import Field

from ..models import HostAccessPoliciesPost
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

Personality = Literal[
    "aix",
    "esxi",
    "hitachi-vsp",
    "hpux",
    "linux",
    "oracle-vm-server",
    "solaris",
    "vms",
    "windows",
]


class HostAccessPolicyRecord(RecordSchema):
    name: str = Field(min_length=1)
    display_name: str | None = None
    iqn: str = Field(min_length=1)
    personality: Personality


class HostAccessPolicyAdapter(ResourceAdapter):
    kind: ClassVar[str] = "host_access_policy"
    schema: ClassVar[type[RecordSchema]] = HostAccessPolicyRecord
    computed: ClassVar[frozenset[str]] = frozenset({"display_name"})

    def prepare_create(self, record: ResourceData) -> WriteRequest:
        name = record.get_str("name")
        body = HostAccessPoliciesPost(
            name=name,
            display_name=record.get_str("display_name") or None,
            iqn=record.get_str("iqn"),
            personality=record.get_str("personality"),
        )
        return WriteRequest(
            "POST", resource_path("host-access-policies"), body, f"create host access policy {name}"
        )

    def read_resource(self, client: FusionClient, record: ResourceData) -> None:
        hap = client.get_host_access_policy_by_id(record.id)
        record.set("name", hap.name)
        record.set("display_name", hap.display_name)
        record.set("iqn", hap.iqn)
        record.set("personality", hap.personality)

    def prepare_delete(self, client: FusionClient, record: ResourceData) -> DeletePlan:
        name = record.get_str("name")
        return DeletePlan(
            final=WriteRequest(
                "DELETE",
                resource_path("host-access-policies", name),
                None,
                f"delete host access policy {name}",
            )
        )
