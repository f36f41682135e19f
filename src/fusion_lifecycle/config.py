"""Provider configuration with validation.

Every value can be given explicitly (the provider configuration block,
or CLI options) or through an environment variable; explicit values win.
All problems are collected and reported together.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from .auth import AUTHENTICATION_ENDPOINT_ENV_VAR, DEFAULT_AUTHENTICATION_ENDPOINT


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


HOST_ENV_VAR = "FUSION_HOST"
ISSUER_ID_ENV_VAR = "FUSION_ISSUER_ID"
PRIVATE_KEY_FILE_ENV_VAR = "FUSION_PRIVATE_KEY_FILE"

# Pure1 token exchange retry: 100ms, growing by 70% per attempt, 13 attempts
DEFAULT_TOKEN_RETRY_DELAY_MS = 100
DEFAULT_TOKEN_RETRY_BACKOFF = 0.7
DEFAULT_TOKEN_RETRY_ATTEMPTS = 13

DEFAULT_REQUEST_TIMEOUT_SECONDS = 60
MIN_REQUEST_TIMEOUT_SECONDS = 1
MAX_REQUEST_TIMEOUT_SECONDS = 3600


def missing_param_message(param: str, env_var: str) -> str:
    return (
        f"No {param} specified. The {param} must be provided either in the provider "
        f"configuration block or with the {env_var} environment variable."
    )


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one Fusion control plane."""

    host: str
    issuer_id: str
    private_key_file: str
    authentication_endpoint: str = DEFAULT_AUTHENTICATION_ENDPOINT
    token_retry_delay_ms: int = DEFAULT_TOKEN_RETRY_DELAY_MS
    token_retry_backoff: float = DEFAULT_TOKEN_RETRY_BACKOFF
    token_retry_attempts: int = DEFAULT_TOKEN_RETRY_ATTEMPTS
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        errors: list[str] = []

        if not self.host:
            errors.append(missing_param_message("host", HOST_ENV_VAR))
        else:
            parsed = urlparse(self.host)
            # Bearer tokens are only sent over TLS
            if parsed.scheme != "https" or not parsed.netloc:
                errors.append(f"host must be an https URL: {self.host}")

        if not self.issuer_id:
            errors.append(missing_param_message("issuer_id", ISSUER_ID_ENV_VAR))

        if not self.private_key_file:
            errors.append(missing_param_message("private_key_file", PRIVATE_KEY_FILE_ENV_VAR))
        elif not Path(self.private_key_file).is_file():
            errors.append(f"Private key file does not exist: {self.private_key_file}")

        if urlparse(self.authentication_endpoint).scheme not in ("http", "https"):
            errors.append(
                f"{AUTHENTICATION_ENDPOINT_ENV_VAR} must be an http(s) URL: "
                f"{self.authentication_endpoint}"
            )

        if self.token_retry_delay_ms < 0:
            errors.append("FUSION_TOKEN_RETRY_DELAY_MS cannot be negative")
        if self.token_retry_backoff < 0:
            errors.append("FUSION_TOKEN_RETRY_BACKOFF cannot be negative")
        if self.token_retry_attempts < 1:
            errors.append("FUSION_TOKEN_RETRY_ATTEMPTS must be at least 1")

        if not (
            MIN_REQUEST_TIMEOUT_SECONDS
            <= self.request_timeout_seconds
            <= MAX_REQUEST_TIMEOUT_SECONDS
        ):
            errors.append(
                f"FUSION_REQUEST_TIMEOUT must be between {MIN_REQUEST_TIMEOUT_SECONDS} "
                f"and {MAX_REQUEST_TIMEOUT_SECONDS} seconds"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(
        cls,
        *,
        host: str | None = None,
        issuer_id: str | None = None,
        private_key_file: str | None = None,
    ) -> ProviderConfig:
        """Load configuration, falling back to environment variables.

        Environment Variables:
            FUSION_HOST: Fusion control plane URL (scheme and host)
            FUSION_ISSUER_ID: API client id registered in Pure1
            FUSION_PRIVATE_KEY_FILE: PEM RSA private key of that API client
            PURE1_AUTHENTICATION_ENDPOINT: Token exchange URL override
            FUSION_TOKEN_RETRY_DELAY_MS: First token retry delay (default: 100)
            FUSION_TOKEN_RETRY_BACKOFF: Token retry delay growth (default: 0.7)
            FUSION_TOKEN_RETRY_ATTEMPTS: Token exchange attempts (default: 13)
            FUSION_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 60)

        Raises:
            ConfigurationError: If any value is missing or invalid.
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        return cls(
            host=host or os.environ.get(HOST_ENV_VAR, ""),
            issuer_id=issuer_id or os.environ.get(ISSUER_ID_ENV_VAR, ""),
            private_key_file=private_key_file or os.environ.get(PRIVATE_KEY_FILE_ENV_VAR, ""),
            authentication_endpoint=(
                os.environ.get(AUTHENTICATION_ENDPOINT_ENV_VAR) or DEFAULT_AUTHENTICATION_ENDPOINT
            ),
            token_retry_delay_ms=get_int("FUSION_TOKEN_RETRY_DELAY_MS", DEFAULT_TOKEN_RETRY_DELAY_MS),
            token_retry_backoff=get_float("FUSION_TOKEN_RETRY_BACKOFF", DEFAULT_TOKEN_RETRY_BACKOFF),
            token_retry_attempts=get_int(
                "FUSION_TOKEN_RETRY_ATTEMPTS", DEFAULT_TOKEN_RETRY_ATTEMPTS
            ),
            request_timeout_seconds=get_int(
                "FUSION_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
        )
