"""Tests for the serial patch sequencer."""

import pytest
from azure.core.exceptions import HttpResponseError, ServiceRequestError
from fusion_mock import error_response, make_operation

from fusion_lifecycle.errors import PatchSequenceError
from fusion_lifecycle.patches import execute_patches


class Recorder:
    """Apply callable that hands back scripted operations per patch."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.applied: list[str] = []

    def __call__(self, patch: str):
        self.applied.append(patch)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class TestExecutePatches:
    """Tests for execute_patches()."""

    def test_applies_in_order_waiting_for_each(self, client, sleeper) -> None:
        """Test that every patch is applied and awaited before the next."""
        apply = Recorder(
            make_operation("op-0", "Running", retry_in=10),
            make_operation("op-1", "Running", retry_in=10),
        )
        client.script_operation("op-0", make_operation("op-0", "Succeeded"))
        client.script_operation("op-1", make_operation("op-1", "Completed"))

        execute_patches(apply, ["p0", "p1"], client, sleep=sleeper)

        assert apply.applied == ["p0", "p1"]
        assert client.polled == ["op-0", "op-1"]

    def test_failure_stops_sequence(self, client, sleeper) -> None:
        """Test that after p1 fails, p2 is never applied."""
        apply = Recorder(
            make_operation("op-0", "Running", retry_in=10),
            make_operation("op-1", "Running", retry_in=10),
            make_operation("op-2", "Running", retry_in=10),
        )
        client.script_operation("op-0", make_operation("op-0", "Succeeded"))
        client.script_operation(
            "op-1", make_operation("op-1", "Failed", error_message="placement group busy")
        )

        with pytest.raises(PatchSequenceError) as exc_info:
            execute_patches(apply, ["p0", "p1", "p2"], client, sleep=sleeper)

        err = exc_info.value
        assert apply.applied == ["p0", "p1"]
        assert err.index == 1
        assert err.total == 3
        assert err.patch == "p1"
        assert err.server_message == "placement group busy"
        assert "op-1" in str(err)
        assert "placement group busy" in str(err)
        assert "patch 2 of 3" in str(err)

    def test_submit_error_propagates(self, client, sleeper) -> None:
        """Test that a transport error from apply is raised unchanged."""
        transport_error = HttpResponseError(response=error_response(500, "internal"))
        apply = Recorder(make_operation("op-0", "Succeeded"), transport_error)

        with pytest.raises(HttpResponseError) as exc_info:
            execute_patches(apply, ["p0", "p1", "p2"], client, sleep=sleeper)

        assert exc_info.value is transport_error
        assert apply.applied == ["p0", "p1"]

    def test_poll_error_aborts_sequence(self, client, sleeper) -> None:
        """Test that a transport error while polling stops later patches."""
        apply = Recorder(
            make_operation("op-0", "Running", retry_in=10),
            make_operation("op-1", "Running", retry_in=10),
        )
        client.script_operation("op-0", ServiceRequestError("connection reset"))

        with pytest.raises(ServiceRequestError):
            execute_patches(apply, ["p0", "p1"], client, sleep=sleeper)

        assert apply.applied == ["p0"]
        assert client.polled == ["op-0"]

    def test_empty_sequence_is_a_no_op(self, client, sleeper) -> None:
        """Test that no patches means no calls."""
        apply = Recorder()

        execute_patches(apply, [], client, sleep=sleeper)

        assert apply.applied == []
        assert client.polled == []
