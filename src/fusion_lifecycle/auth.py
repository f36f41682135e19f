"""Pure1 self-signed token credential.

The Fusion API accepts bearer tokens issued by Pure1. To get one, the
client signs a short JWT with its own RSA private key (issuer = the API
client id registered in Pure1) and exchanges it at the Pure1 token
endpoint (OAuth 2.0 token exchange, RFC 8693). The resulting access
token is good for about an hour.

The exchange is retried with exponential backoff, but only for HTTP 5xx
answers; a 4xx (bad issuer, bad key) or a local key problem fails at once.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import jwt
from azure.core import PipelineClient
from azure.core.credentials import AccessToken
from azure.core.exceptions import DecodeError, HttpResponseError
from azure.core.pipeline.policies import (
    HeadersPolicy,
    NetworkTraceLoggingPolicy,
    RetryPolicy,
    UserAgentPolicy,
)
from azure.core.rest import HttpRequest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import ValidationError

from . import __version__
from .errors import CredentialError
from .models import WireModel
from .retry import retry

logger = logging.getLogger(__name__)

DEFAULT_AUTHENTICATION_ENDPOINT = "https://api.pure1.purestorage.com/oauth2/1.0/token"
AUTHENTICATION_ENDPOINT_ENV_VAR = "PURE1_AUTHENTICATION_ENDPOINT"

TOKEN_EXCHANGE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:token-exchange"
JWT_TOKEN_TYPE = "urn:ietf:params:oauth:token-type:jwt"

IDENTITY_TOKEN_LIFETIME_SECONDS = 3600
# Fetch a new token this long before the cached one expires
REFRESH_MARGIN_SECONDS = 300


class TokenResponse(WireModel):
    access_token: str
    token_type: str = ""
    expires_in: int | None = None


def load_private_key(private_key_file: str) -> rsa.RSAPrivateKey:
    """Read and parse an unencrypted PEM RSA private key.

    Raises:
        CredentialError: If the file cannot be read or is not an RSA key.
    """
    try:
        with open(private_key_file, "rb") as f:
            data = f.read()
    except OSError as e:
        raise CredentialError(
            f"failed to read private key file path:{private_key_file} err:{e}"
        ) from e

    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as e:
        raise CredentialError(f"failed to parse private key path:{private_key_file} err:{e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise CredentialError(
            f"failed to parse private key path:{private_key_file} err:not an RSA private key"
        )
    return key


def sign_identity_token(issuer_id: str, private_key: rsa.RSAPrivateKey, now: int) -> str:
    """Sign the RS256 identity JWT presented to the token exchange."""
    claims = {
        "iss": issuer_id,
        "iat": now,
        "exp": now + IDENTITY_TOKEN_LIFETIME_SECONDS,
    }
    return jwt.encode(claims, private_key, algorithm="RS256")


def is_server_error(exc: Exception) -> bool:
    """Only 5xx answers from the token endpoint are worth retrying."""
    if not isinstance(exc, HttpResponseError) or exc.status_code is None:
        return False
    return 500 <= exc.status_code < 600


def _token_pipeline(endpoint: str) -> PipelineClient:
    return PipelineClient(
        base_url=endpoint,
        policies=[
            HeadersPolicy({"Accept": "application/json"}),
            UserAgentPolicy(base_user_agent=f"fusion-lifecycle/{__version__}"),
            RetryPolicy.no_retries(),
            NetworkTraceLoggingPolicy(),
        ],
    )


def get_pure1_access_token(
    issuer_id: str,
    private_key_file: str,
    *,
    endpoint: str = DEFAULT_AUTHENTICATION_ENDPOINT,
    pipeline_client: PipelineClient | None = None,
    clock: Callable[[], float] = time.time,
) -> AccessToken:
    """Exchange a self-signed identity token for a Pure1 access token.

    One attempt, no retries.

    Raises:
        CredentialError: If the private key cannot be loaded or signed with.
        HttpResponseError: If the token endpoint rejects the exchange.
        DecodeError: If the endpoint answers with something other than a token.
    """
    private_key = load_private_key(private_key_file)
    now = int(clock())
    try:
        identity_token = sign_identity_token(issuer_id, private_key, now)
    except jwt.PyJWTError as e:
        raise CredentialError(
            f"failed to sign identity token path:{private_key_file} err:{e}"
        ) from e

    client = pipeline_client or _token_pipeline(endpoint)
    request = HttpRequest(
        "POST",
        endpoint,
        data={
            "grant_type": TOKEN_EXCHANGE_GRANT_TYPE,
            "subject_token": identity_token,
            "subject_token_type": JWT_TOKEN_TYPE,
        },
    )
    response = client.send_request(request)
    if not 200 <= response.status_code < 300:
        raise HttpResponseError(
            message=f"failed to exchange token endpoint:{endpoint} path:{private_key_file}",
            response=response,
        )

    try:
        token = TokenResponse.model_validate_json(response.text())
    except ValidationError as e:
        raise DecodeError(message=f"Unexpected token response: {e}", response=response) from e

    lifetime = token.expires_in or IDENTITY_TOKEN_LIFETIME_SECONDS
    return AccessToken(token.access_token, now + lifetime)


class Pure1SelfSignedCredential:
    """azure-core TokenCredential backed by the Pure1 token exchange.

    Tokens are cached and refreshed shortly before they expire. Scopes are
    accepted for protocol compatibility and ignored: Pure1 issues a single
    token for the whole API.
    """

    def __init__(
        self,
        issuer_id: str,
        private_key_file: str,
        *,
        endpoint: str = DEFAULT_AUTHENTICATION_ENDPOINT,
        retry_delay_ms: int = 100,
        retry_backoff: float = 0.7,
        retry_attempts: int = 13,
        pipeline_client: PipelineClient | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._issuer_id = issuer_id
        self._private_key_file = private_key_file
        self._endpoint = endpoint
        self._retry_delay_ms = retry_delay_ms
        self._retry_backoff = retry_backoff
        self._retry_attempts = retry_attempts
        self._pipeline_client = pipeline_client
        self._sleep = sleep
        self._clock = clock
        self._token: AccessToken | None = None

    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        token = self._token
        if token is not None and token.expires_on - REFRESH_MARGIN_SECONDS > self._clock():
            return token

        logger.debug("Requesting Pure1 access token", extra={"endpoint": self._endpoint})
        try:
            self._token = retry(
                self._exchange,
                initial_delay_ms=self._retry_delay_ms,
                backoff_factor=self._retry_backoff,
                attempt_limit=self._retry_attempts,
                context="pure1_token",
                is_retryable=is_server_error,
                sleep=self._sleep,
            )
        except Exception as e:
            logger.error("Error getting API token", extra={"error": str(e)})
            raise
        logger.debug("API token has been successfully retrieved")
        return self._token

    def _exchange(self) -> AccessToken:
        if self._pipeline_client is None:
            self._pipeline_client = _token_pipeline(self._endpoint)
        return get_pure1_access_token(
            self._issuer_id,
            self._private_key_file,
            endpoint=self._endpoint,
            pipeline_client=self._pipeline_client,
            clock=self._clock,
        )

    def close(self) -> None:
        if self._pipeline_client is not None:
            self._pipeline_client.close()
