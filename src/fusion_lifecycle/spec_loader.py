"""Record and state file loading with validation.

A record file is YAML holding the desired attributes of one resource,
either flat or wrapped with a ``kind`` and a ``spec`` section. A state
file is the JSON written after a previous lifecycle call: the resource
id plus every attribute observed at that time.

All file operations enforce size limits before reading.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

MAX_RECORD_FILE_SIZE_BYTES = 1024 * 1024  # 1MB
MAX_STATE_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10MB


class SpecLoadError(Exception):
    """Raised when a record or state file cannot be loaded."""

    pass


@dataclass(frozen=True)
class RecordFile:
    """Desired attributes read from a record file."""

    attributes: dict[str, Any]
    kind: str | None = None


@dataclass(frozen=True)
class StateFile:
    """Resource id and observed attributes from a previous run."""

    resource_id: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
    kind: str | None = None


def _read_limited(path: Path, limit: int, what: str) -> str:
    if not path.exists():
        raise SpecLoadError(f"{what} file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat {what} file {path}: {e}") from e

    if file_size > limit:
        raise SpecLoadError(f"{what} file exceeds maximum size of {limit} bytes: {path}")

    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read {what} file {path}: {e}") from e


def load_record(path: Path) -> RecordFile:
    """Load the desired attributes of one resource from YAML.

    Raises:
        SpecLoadError: If the file is missing, too large or not a mapping.
    """
    content = _read_limited(path, MAX_RECORD_FILE_SIZE_BYTES, "Record")

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Record file must contain a YAML mapping: {path}")

    # Wrapped format: kind + spec
    if "spec" in raw_data and "kind" in raw_data:
        spec_data = raw_data["spec"]
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {path}")
        kind = raw_data["kind"]
        if not isinstance(kind, str):
            raise SpecLoadError(f"kind must be a string: {path}")
        logger.debug("Loaded record", extra={"path": str(path), "kind": kind})
        return RecordFile(attributes=dict(spec_data), kind=kind)

    logger.debug("Loaded record", extra={"path": str(path)})
    return RecordFile(attributes=dict(raw_data))


def load_state(path: Path) -> StateFile:
    """Load a state file written by ``write_state``.

    Raises:
        SpecLoadError: If the file is missing, too large or malformed.
    """
    content = _read_limited(path, MAX_STATE_FILE_SIZE_BYTES, "State")

    try:
        raw_data = json.loads(content)
    except json.JSONDecodeError as e:
        raise SpecLoadError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"State file must contain a JSON object: {path}")

    resource_id = raw_data.get("id", "")
    attributes = raw_data.get("attributes", {})
    if not isinstance(resource_id, str):
        raise SpecLoadError(f"State id must be a string: {path}")
    if not isinstance(attributes, dict):
        raise SpecLoadError(f"State attributes must be an object: {path}")

    return StateFile(resource_id=resource_id, attributes=attributes, kind=raw_data.get("kind"))


def write_state(path: Path, state: dict[str, Any]) -> None:
    """Write a record snapshot (``ResourceData.to_state()``) as JSON."""
    try:
        path.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to write state file {path}: {e}") from e
