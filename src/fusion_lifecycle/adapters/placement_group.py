"""Placement group adapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

from pydantic import Field

from ..errors import ImmutableFieldError
from ..models import NullableString, PlacementEngine, PlacementGroupPatch, PlacementGroupPost
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

# Only affects what happens on delete; never sent to the API
LOCAL_FIELDS = ("destroy_snapshots_on_delete",)


class PlacementGroupRecord(RecordSchema):
    name: str = Field(min_length=1)
    display_name: str | None = None
    tenant_name: str = Field(min_length=1)
    tenant_space_name: str = Field(min_length=1)
    region_name: str = Field(min_length=1)
    availability_zone_name: str = Field(min_length=1)
    storage_service_name: str = Field(min_length=1)
    placement_engine: PlacementEngine | None = None
    destroy_snapshots_on_delete: bool = Field(
        default=False,
        description=(
            "Delete the placement group's snapshots before deleting it. If false, "
            "snapshots must be removed separately first."
        ),
    )


class PlacementGroupAdapter(ResourceAdapter):
    kind: ClassVar[str] = "placement_group"
    schema: ClassVar[type[RecordSchema]] = PlacementGroupRecord
    computed: ClassVar[frozenset[str]] = frozenset({"display_name", "placement_engine"})

    def _tenant_space_path(self, record: ResourceData, *extra: str) -> str:
        return resource_path(
            "tenants",
            record.get_str("tenant_name"),
            "tenant-spaces",
            record.get_str("tenant_space_name"),
            *extra,
        )

    def prepare_create(self, record: ResourceData) -> WriteRequest:
        name = record.get_str("name")
        engine = record.get_str("placement_engine")
        logger.debug(
            "PlacementGroup.prepare_create",
            extra={"tenant_space": record.get_str("tenant_space_name"), "placement_group": name},
        )
        body = PlacementGroupPost(
            name=name,
            display_name=record.get_str("display_name", name),
            region=record.get_str("region_name"),
            availability_zone=record.get_str("availability_zone_name"),
            storage_service=record.get_str("storage_service_name"),
            placement_engine=PlacementEngine(engine) if engine else None,
        )
        return WriteRequest(
            "POST",
            self._tenant_space_path(record, "placement-groups"),
            body,
            f"create placement group {name}",
        )

    def read_resource(self, client: FusionClient, record: ResourceData) -> None:
        logger.debug("PlacementGroup.read_resource", extra={"resource_id": record.id})
        pg = client.get_placement_group_by_id(record.id)

        record.set("name", pg.name)
        record.set("display_name", pg.display_name)
        record.set("tenant_name", pg.tenant.name)
        record.set("tenant_space_name", pg.tenant_space.name)
        record.set("availability_zone_name", pg.availability_zone.name)
        record.set("storage_service_name", pg.storage_service.name)
        record.set("placement_engine", pg.placement_engine)

        # The region is only reachable through the availability zone
        az = client.get_availability_zone_by_id(pg.availability_zone.id)
        record.set("region_name", az.region.name)

    def prepare_update(self, client: FusionClient, record: ResourceData) -> list[WriteRequest]:
        if record.has_change_except("display_name", *LOCAL_FIELDS):
            immutable = set(record.changed_keys()) - {"display_name", *LOCAL_FIELDS}
            raise ImmutableFieldError(self.kind, immutable)
        if not record.has_change("display_name"):
            return []

        name = record.get_str("name")
        display_name = record.get_str("display_name")
        logger.info("Updating", extra={"resource": self.kind, "display_name": display_name})
        return [
            WriteRequest(
                "PATCH",
                self._tenant_space_path(record, "placement-groups", name),
                PlacementGroupPatch(display_name=NullableString(value=display_name)),
                f"update placement group {name}",
            )
        ]

    def prepare_delete(self, client: FusionClient, record: ResourceData) -> DeletePlan:
        name = record.get_str("name")
        cleanup: list[WriteRequest] = []

        if record.get_bool("destroy_snapshots_on_delete"):
            logger.debug("Destroying relevant snapshots", extra={"placement_group": name})
            snapshots = client.list_snapshots(
                record.get_str("tenant_name"),
                record.get_str("tenant_space_name"),
                placement_group=name,
            )
            for snapshot in snapshots.items:
                logger.info("Deleting Snapshot", extra={"snapshot_name": snapshot.name})
                cleanup.append(
                    WriteRequest(
                        "DELETE",
                        self._tenant_space_path(record, "snapshots", snapshot.name),
                        None,
                        f"delete snapshot {snapshot.name}",
                    )
                )

        return DeletePlan(
            final=WriteRequest(
                "DELETE",
                self._tenant_space_path(record, "placement-groups", name),
                None,
                f"delete placement group {name}",
            ),
            cleanup=tuple(cleanup),
        )
