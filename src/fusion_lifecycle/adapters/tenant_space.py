"""Tenant space adapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

from pydantic import Field

from ..errors import ImmutableFieldError
from ..models import NullableString, TenantSpacePatch, TenantSpacePost
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


class TenantSpaceRecord(RecordSchema):
    tenant_name: str = Field(min_length=1)
    name: str = Field(min_length=1)
    display_name: str | None = None


class TenantSpaceAdapter(ResourceAdapter):
    kind: ClassVar[str] = "tenant_space"
    schema: ClassVar[type[RecordSchema]] = TenantSpaceRecord
    computed: ClassVar[frozenset[str]] = frozenset({"display_name"})

    def prepare_create(self, record: ResourceData) -> WriteRequest:
        name = record.get_str("name")
        body = TenantSpacePost(name=name, display_name=record.get_str("display_name") or None)
        return WriteRequest(
            "POST",
            resource_path("tenants", record.get_str("tenant_name"), "tenant-spaces"),
            body,
            f"create tenant space {name}",
        )

    def read_resource(self, client: FusionClient, record: ResourceData) -> None:
        ts = client.get_tenant_space_by_id(record.id)
        record.set("name", ts.name)
        record.set("display_name", ts.display_name)
        record.set("tenant_name", ts.tenant.name)

    def prepare_update(self, client: FusionClient, record: ResourceData) -> list[WriteRequest]:
        if record.has_change_except("display_name"):
            raise ImmutableFieldError(
                self.kind, set(record.changed_keys()) - {"display_name"}
            )
        if not record.has_change("display_name"):
            return []

        name = record.get_str("name")
        display_name = record.get_str("display_name")
        logger.info("Updating", extra={"resource": self.kind, "display_name": display_name})
        return [
            WriteRequest(
                "PATCH",
                resource_path("tenants", record.get_str("tenant_name"), "tenant-spaces", name),
                TenantSpacePatch(display_name=NullableString(value=display_name)),
                f"update tenant space {name}",
            )
        ]

    def prepare_delete(self, client: FusionClient, record: ResourceData) -> DeletePlan:
        name = record.get_str("name")
        return DeletePlan(
            final=WriteRequest(
                "DELETE",
                resource_path("tenants", record.get_str("tenant_name"), "tenant-spaces", name),
                None,
                f"delete tenant space {name}",
            )
        )
