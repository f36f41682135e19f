"""HTTP transport for the Fusion REST API.

Built on azure-core's PipelineClient so authentication, user agent and
network tracing are pipeline policies, and non-2xx responses become the
same azure-core exceptions the rest of the stack handles:

    401 -> ClientAuthenticationError
    404 -> ResourceNotFoundError
    409 -> ResourceExistsError
    other non-2xx -> HttpResponseError

Transport errors are never retried here (RetryPolicy.no_retries()).
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, TypeVar
from urllib.parse import urljoin

from azure.core import PipelineClient
from azure.core.credentials import TokenCredential
from azure.core.exceptions import (
    ClientAuthenticationError,
    DecodeError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    map_error,
)
from azure.core.pipeline.policies import (
    BearerTokenCredentialPolicy,
    HeadersPolicy,
    NetworkTraceLoggingPolicy,
    RetryPolicy,
    UserAgentPolicy,
)
from azure.core.rest import HttpRequest, HttpResponse
from pydantic import BaseModel, ValidationError

from . import __version__
from .models import (
    AvailabilityZone,
    HostAccessPolicy,
    Operation,
    PlacementGroup,
    SnapshotList,
    TenantSpace,
    Volume,
)
from .resource import WriteRequest, resource_path

logger = logging.getLogger(__name__)

API_BASE_PATH = "api/1.0"
USER_AGENT = f"fusion-lifecycle/{__version__}"
DEFAULT_TIMEOUT_SECONDS = 60

ERROR_MAP: dict[int, type[HttpResponseError]] = {
    401: ClientAuthenticationError,
    404: ResourceNotFoundError,
    409: ResourceExistsError,
}

M = TypeVar("M", bound=BaseModel)


def api_base_url(host: str) -> str:
    """Append the API base path to ``host`` (scheme + authority)."""
    return urljoin(host.rstrip("/") + "/", API_BASE_PATH)


class FusionClient:
    """Typed access to the Fusion endpoints the lifecycle needs.

    Writes go through ``submit`` with a WriteRequest and always return the
    Operation the server started. Reads return pydantic models.
    """

    def __init__(
        self,
        host: str,
        credential: TokenCredential,
        *,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        request_ids: bool = True,
        pipeline_client: PipelineClient | None = None,
    ) -> None:
        self._base_url = api_base_url(host)
        self._timeout = timeout
        self._request_ids = request_ids
        self._credential = credential
        self._client = pipeline_client or PipelineClient(
            base_url=self._base_url,
            policies=[
                HeadersPolicy({"Accept": "application/json"}),
                UserAgentPolicy(base_user_agent=USER_AGENT),
                RetryPolicy.no_retries(),
                BearerTokenCredentialPolicy(credential),
                NetworkTraceLoggingPolicy(),
            ],
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._client.close()
        # The token credential may hold its own pipeline to the token endpoint
        close_credential = getattr(self._credential, "close", None)
        if close_credential is not None:
            close_credential()

    def __enter__(self) -> FusionClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def submit(self, request: WriteRequest) -> Operation:
        """Send a mutating request and return the Operation it started."""
        body = request.body.to_wire() if request.body is not None else None
        logger.debug(
            "Submitting request",
            extra={
                "method": request.method,
                "path": request.path,
                "description": request.description,
            },
        )
        return self._send(request.method, request.path, Operation, json=body)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_operation(self, operation_id: str) -> Operation:
        return self._send("GET", resource_path("resources", "operations", operation_id), Operation)

    def get_volume_by_id(self, volume_id: str) -> Volume:
        return self._send("GET", resource_path("resources", "volumes", volume_id), Volume)

    def get_placement_group_by_id(self, placement_group_id: str) -> PlacementGroup:
        return self._send(
            "GET", resource_path("resources", "placement-groups", placement_group_id), PlacementGroup
        )

    def get_tenant_space_by_id(self, tenant_space_id: str) -> TenantSpace:
        return self._send(
            "GET", resource_path("resources", "tenant-spaces", tenant_space_id), TenantSpace
        )

    def get_host_access_policy_by_id(self, policy_id: str) -> HostAccessPolicy:
        return self._send(
            "GET", resource_path("resources", "host-access-policies", policy_id), HostAccessPolicy
        )

    def get_availability_zone_by_id(self, availability_zone_id: str) -> AvailabilityZone:
        return self._send(
            "GET",
            resource_path("resources", "availability-zones", availability_zone_id),
            AvailabilityZone,
        )

    def list_snapshots(
        self, tenant_name: str, tenant_space_name: str, *, placement_group: str | None = None
    ) -> SnapshotList:
        params = {"placement_group": placement_group} if placement_group else None
        return self._send(
            "GET",
            resource_path("tenants", tenant_name, "tenant-spaces", tenant_space_name, "snapshots"),
            SnapshotList,
            params=params,
        )

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        model: type[M],
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> M:
        headers = {}
        if self._request_ids:
            headers["X-Request-ID"] = str(uuid.uuid4())

        request = HttpRequest(
            method,
            self._base_url + path,
            json=json,
            params=params,
            headers=headers,
        )
        response = self._client.send_request(
            request,
            connection_timeout=self._timeout,
            read_timeout=self._timeout,
        )
        self._raise_for_status(response)
        return self._deserialize(response, model)

    @staticmethod
    def _raise_for_status(response: HttpResponse) -> None:
        if 200 <= response.status_code < 300:
            return
        map_error(status_code=response.status_code, response=response, error_map=ERROR_MAP)
        raise HttpResponseError(response=response)

    @staticmethod
    def _deserialize(response: HttpResponse, model: type[M]) -> M:
        text = response.text()
        if not text:
            if model is Operation:
                # Some writes answer with an empty body; callers see a null operation
                return model()
            raise DecodeError(
                message=f"Empty response body for {model.__name__}", response=response
            )
        try:
            return model.model_validate_json(text)
        except ValidationError as e:
            raise DecodeError(
                message=f"Unable to deserialize {model.__name__}: {e}", response=response
            ) from e
