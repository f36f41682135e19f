"""Tests for the fusionctl command line."""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner
from fusion_mock import MockFusionClient, make_operation

from fusion_lifecycle.cli import EXIT_FAILURE, EXIT_TEMPFAIL, EXIT_USAGE, cli
from fusion_lifecycle.main import JsonFormatter
from fusion_lifecycle.models import ResourceReference, TenantSpace

TENANT_SPACE_YAML = "kind: tenant_space\nspec:\n  tenant_name: acme\n  name: prod\n"


@pytest.fixture(autouse=True)
def detach_log_handlers():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)


@pytest.fixture
def mock_client(monkeypatch: pytest.MonkeyPatch) -> MockFusionClient:
    client = MockFusionClient()
    monkeypatch.setattr("fusion_lifecycle.cli.build_client", lambda config: client)
    return client


@pytest.fixture
def invoke(private_key_file: Path):
    runner = CliRunner()

    def run(*args: str):
        return runner.invoke(
            cli,
            [
                "--host",
                "https://fusion.example.com",
                "--issuer-id",
                "pure1:apikey:abc",
                "--private-key-file",
                str(private_key_file),
                *args,
            ],
        )

    return run


def tenant_space(ts_id: str = "ts-1", display_name: str = "prod") -> TenantSpace:
    return TenantSpace(
        id=ts_id, name="prod", display_name=display_name, tenant=ResourceReference(name="acme")
    )


def output_document(result) -> dict:
    return json.loads(result.stdout)


class TestCreate:
    """Tests for fusionctl create."""

    def test_create_writes_state(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test a successful create prints the result and writes state."""
        record = tmp_path / "ts.yaml"
        record.write_text(TENANT_SPACE_YAML)
        state_out = tmp_path / "ts.state.json"
        mock_client.script_success("op-1", resource_id="ts-1")
        mock_client.tenant_spaces["ts-1"] = tenant_space()

        result = invoke("create", "tenant_space", str(record), "--state-out", str(state_out))

        assert result.exit_code == 0, result.output
        document = output_document(result)
        assert document["success"] is True
        assert document["resource_id"] == "ts-1"
        state = json.loads(state_out.read_text())
        assert state["id"] == "ts-1"
        assert state["attributes"]["tenant_name"] == "acme"
        assert mock_client.closed

    def test_failed_operation_exits_1(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test that a Failed operation maps to a terminal exit code."""
        record = tmp_path / "ts.yaml"
        record.write_text(TENANT_SPACE_YAML)
        mock_client.script_failure("op-1", "tenant space exists")

        result = invoke("create", "tenant_space", str(record))

        assert result.exit_code == EXIT_FAILURE
        document = output_document(result)
        assert document["diagnostics"][0]["retryable"] is False
        assert "tenant space exists" in document["diagnostics"][0]["summary"]

    def test_transport_failure_exits_tempfail(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test that a retryable failure maps to EX_TEMPFAIL."""
        from azure.core.exceptions import ServiceRequestError

        record = tmp_path / "ts.yaml"
        record.write_text(TENANT_SPACE_YAML)
        mock_client.script_submit(ServiceRequestError("connection refused"))

        result = invoke("create", "tenant_space", str(record))

        assert result.exit_code == EXIT_TEMPFAIL

    def test_kind_mismatch_is_usage_error(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test that a record for another kind is refused before any call."""
        record = tmp_path / "ts.yaml"
        record.write_text(TENANT_SPACE_YAML)

        result = invoke("create", "volume", str(record))

        assert result.exit_code == EXIT_USAGE
        assert mock_client.submit_count == 0

    def test_invalid_record_is_usage_error(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test that schema violations exit 2."""
        record = tmp_path / "ts.yaml"
        record.write_text("name: prod\n")

        result = invoke("create", "tenant_space", str(record))

        assert result.exit_code == EXIT_USAGE
        assert "invalid tenant_space record" in result.stderr

    def test_missing_configuration(self, mock_client, tmp_path: Path, monkeypatch) -> None:
        """Test that missing provider settings exit 2."""
        for var in ("FUSION_HOST", "FUSION_ISSUER_ID", "FUSION_PRIVATE_KEY_FILE"):
            monkeypatch.delenv(var, raising=False)
        record = tmp_path / "ts.yaml"
        record.write_text(TENANT_SPACE_YAML)

        result = CliRunner().invoke(cli, ["create", "tenant_space", str(record)])

        assert result.exit_code == EXIT_USAGE
        assert "No host specified" in result.stderr


class TestOtherCommands:
    """Tests for read, update, delete and import."""

    def write_state(self, tmp_path: Path) -> Path:
        path = tmp_path / "ts.state.json"
        path.write_text(
            json.dumps(
                {
                    "kind": "tenant_space",
                    "id": "ts-1",
                    "attributes": {"tenant_name": "acme", "name": "prod", "display_name": "prod"},
                }
            )
        )
        return path

    def test_update_patches_display_name(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test update from record and state."""
        record = tmp_path / "ts.yaml"
        record.write_text(TENANT_SPACE_YAML + "  display_name: Production\n")
        mock_client.script_success("op-1")
        mock_client.tenant_spaces["ts-1"] = tenant_space(display_name="Production")

        result = invoke(
            "update", "tenant_space", str(record), "--state", str(self.write_state(tmp_path))
        )

        assert result.exit_code == 0, result.output
        assert mock_client.submitted[0].body.to_wire() == {"display_name": {"value": "Production"}}

    def test_failed_update_leaves_state_file(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test that a failed update does not record unapplied values."""
        record = tmp_path / "ts.yaml"
        record.write_text(TENANT_SPACE_YAML + "  display_name: Production\n")
        state = self.write_state(tmp_path)
        mock_client.script_failure("op-1", "tenant space is busy")

        result = invoke(
            "update", "tenant_space", str(record), "--state", str(state), "--state-out", str(state)
        )

        assert result.exit_code == EXIT_FAILURE
        saved = json.loads(state.read_text())
        assert saved["id"] == "ts-1"
        assert saved["attributes"]["display_name"] == "prod"

    def test_state_kind_mismatch_is_usage_error(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test that a state file for another kind is refused before any call."""
        state = tmp_path / "pg.state.json"
        state.write_text(
            json.dumps(
                {
                    "kind": "placement_group",
                    "id": "pg-1",
                    "attributes": {"tenant_name": "acme", "tenant_space_name": "prod", "name": "pg"},
                }
            )
        )

        result = invoke("delete", "volume", "--state", str(state))

        assert result.exit_code == EXIT_USAGE
        assert "is for kind placement_group" in result.stderr
        assert mock_client.submit_count == 0

    def test_update_requires_state(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test that update without --state is a usage error."""
        record = tmp_path / "ts.yaml"
        record.write_text(TENANT_SPACE_YAML)

        result = invoke("update", "tenant_space", str(record))

        assert result.exit_code == EXIT_USAGE
        assert "--state" in result.output

    def test_read_not_found_succeeds(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test that a vanished resource is reported, not failed."""
        state_out = tmp_path / "out.json"

        result = invoke(
            "read",
            "tenant_space",
            "--state",
            str(self.write_state(tmp_path)),
            "--state-out",
            str(state_out),
        )

        assert result.exit_code == 0, result.output
        assert output_document(result)["not_found"] is True
        assert json.loads(state_out.read_text())["id"] == ""

    def test_delete(self, invoke, mock_client, tmp_path: Path) -> None:
        """Test delete from state."""
        mock_client.script_submit(make_operation("op-1", "Succeeded"))

        result = invoke("delete", "tenant_space", "--state", str(self.write_state(tmp_path)))

        assert result.exit_code == 0, result.output
        assert mock_client.submitted[0].path == "/tenants/acme/tenant-spaces/prod"

    def test_import(self, invoke, mock_client) -> None:
        """Test import by id."""
        mock_client.tenant_spaces["ts-1"] = tenant_space()

        result = invoke("import", "tenant_space", "--id", "ts-1")

        assert result.exit_code == 0, result.output
        document = output_document(result)
        assert document["action"] == "import"
        assert document["state"]["attributes"]["name"] == "prod"

    def test_unknown_kind(self, invoke, mock_client) -> None:
        """Test that click rejects unknown kinds."""
        result = invoke("import", "snapshot", "--id", "s-1")

        assert result.exit_code == EXIT_USAGE
