"""Declarative record, request descriptors and the adapter contract.

An adapter translates a declarative record into transport requests for
one resource kind. It never performs mutating calls itself: it returns
WriteRequest values (method, path, body) that the driver submits and
waits on, so every mutation flows through the same poller and error
classification.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from .errors import InvalidRecordError, UnsupportedOperationError
from .models import RequestBody

if TYPE_CHECKING:
    from .transport import FusionClient


def resource_path(*segments: str) -> str:
    """Join path segments, escaping each one."""
    for segment in segments:
        if not segment:
            raise InvalidRecordError(f"empty path segment in {segments!r}")
    return "/" + "/".join(quote(segment, safe="") for segment in segments)


@dataclass(frozen=True)
class WriteRequest:
    """One mutating API call, fully described by value.

    Submitting it is FusionClient.submit(request), which returns the
    Operation the server started.
    """

    method: str
    path: str
    body: RequestBody | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.method not in ("POST", "PATCH", "DELETE"):
            raise ValueError(f"WriteRequest method must be POST, PATCH or DELETE: {self.method}")


@dataclass(frozen=True)
class DeletePlan:
    """Cleanup steps run and waited on in order, then the delete itself."""

    final: WriteRequest
    cleanup: tuple[WriteRequest, ...] = field(default_factory=tuple)


class RecordSchema(BaseModel):
    """Base for per-kind declarative record schemas."""

    model_config = {"extra": "forbid", "str_strip_whitespace": True}


class ResourceData:
    """Declarative record for one resource.

    Holds the desired attributes merged over the last observed state.
    ``has_change`` compares the two, which is what adapters use to build
    update patches. ``set`` records observed values after a read.
    """

    def __init__(
        self,
        kind: str,
        desired: Mapping[str, Any] | None = None,
        *,
        state: Mapping[str, Any] | None = None,
        resource_id: str = "",
        computed: Iterable[str] = (),
    ) -> None:
        self._kind = kind
        self._id = resource_id
        self._prior: dict[str, Any] = dict(state or {})
        self._values: dict[str, Any] = dict(self._prior)

        computed_keys = frozenset(computed)
        for key, value in (desired or {}).items():
            # Optional+computed attributes left unset keep the observed value
            if value is None and key in computed_keys and key in self._prior:
                continue
            self._values[key] = value

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, resource_id: str) -> None:
        self._id = resource_id

    def get(self, key: str, default: Any = None) -> Any:
        value = self._values.get(key)
        return default if value is None else value

    def get_str(self, key: str, default: str = "") -> str:
        """Get a string attribute; unset or empty yields ``default``."""
        value = self._values.get(key)
        if value is None or value == "":
            return default
        if not isinstance(value, str):
            raise InvalidRecordError(
                f"{self._kind}.{key} must be a string, got {type(value).__name__}"
            )
        return value

    def get_int(self, key: str) -> int:
        value = self._values.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidRecordError(f"{self._kind}.{key} must be an integer, got {value!r}")
        return value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if value is None:
            return default
        return bool(value)

    def get_list(self, key: str) -> list[Any]:
        value = self._values.get(key)
        return list(value) if value else []

    def get_prior(self, key: str, default: Any = None) -> Any:
        """Last observed value of ``key``, ignoring the desired one."""
        value = self._prior.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def has_change(self, key: str) -> bool:
        return _normalize(self._values.get(key)) != _normalize(self._prior.get(key))

    def changed_keys(self) -> list[str]:
        keys = set(self._values) | set(self._prior)
        return sorted(key for key in keys if self.has_change(key))

    def has_change_except(self, *keys: str) -> bool:
        return bool(set(self.changed_keys()) - set(keys))

    @property
    def attributes(self) -> dict[str, Any]:
        return dict(self._values)

    def to_state(self) -> dict[str, Any]:
        """Serializable snapshot: id plus every known attribute."""
        return {"kind": self._kind, "id": self._id, "attributes": self.attributes}

    def __repr__(self) -> str:
        return f"ResourceData(kind={self._kind!r}, id={self._id!r})"


def _normalize(value: Any) -> Any:
    # Unset and empty compare equal; set-like lists compare order-free
    if value is None or value == "" or value == []:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return sorted(value)
    return value


class ResourceAdapter:
    """Per-kind translation between a record and transport requests.

    Subclasses override the actions their kind supports; the defaults
    reject the action before any network call.
    """

    kind: ClassVar[str] = ""
    schema: ClassVar[type[RecordSchema]] = RecordSchema
    # Optional attributes the server fills in when left unset
    computed: ClassVar[frozenset[str]] = frozenset()

    def new_record(
        self,
        desired: Mapping[str, Any] | None = None,
        *,
        state: Mapping[str, Any] | None = None,
        resource_id: str = "",
    ) -> ResourceData:
        """Validate ``desired`` against the kind's schema and build a record.

        Raises:
            InvalidRecordError: If required attributes are missing or malformed.
        """
        validated: dict[str, Any] = {}
        if desired is not None:
            try:
                validated = self.schema.model_validate(dict(desired)).model_dump(mode="json")
            except ValidationError as e:
                problems = [
                    f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}"
                    for error in e.errors()
                ]
                raise InvalidRecordError(
                    f"invalid {self.kind} record: " + "; ".join(problems)
                ) from e
        return ResourceData(
            self.kind,
            validated,
            state=state,
            resource_id=resource_id,
            computed=self.computed,
        )

    def prepare_create(self, record: ResourceData) -> WriteRequest:
        raise UnsupportedOperationError("create", self.kind)

    def read_resource(self, client: FusionClient, record: ResourceData) -> None:
        raise UnsupportedOperationError("read", self.kind)

    def prepare_update(self, client: FusionClient, record: ResourceData) -> list[WriteRequest]:
        raise UnsupportedOperationError("update", self.kind)

    def prepare_delete(self, client: FusionClient, record: ResourceData) -> DeletePlan:
        raise UnsupportedOperationError("delete", self.kind)
