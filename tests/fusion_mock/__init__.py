"""Fusion API mock for driver and transport tests.

Provides a scripted in-memory client (operations, submissions, resource
reads) and fake azure-core responses, so the lifecycle can be exercised
without a network.

Usage:
    from fusion_mock import MockFusionClient, make_operation

    client = MockFusionClient()
    client.script_success("op-1", resource_id="abc123")
    result = ResourceDriver(VolumeAdapter(), client, sleep=lambda s: None).create(record)
"""

from .client import MockFusionClient, make_operation, not_found
from .responses import FakeRequest, FakeResponse, error_response, json_response

__all__ = [
    "FakeRequest",
    "FakeResponse",
    "MockFusionClient",
    "error_response",
    "json_response",
    "make_operation",
    "not_found",
]
