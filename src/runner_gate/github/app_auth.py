"""GitHub App authentication: app JWT minting and installation token exchange.

The scan hook authenticates as a GitHub App, never as a user:

1. Sign a short-lived RS256 JWT with the app's private key
   (iat = now - 60s for clock skew, exp = now + 600s, iss = app ID).
2. POST it to /app/installations/{id}/access_tokens to obtain an
   installation token.

Nothing here is retried. A key that fails to load will not load on a second
try, and the exchange sits on the job's critical path. Neither the JWT nor
the raw exchange response is ever logged.
"""

from __future__ import annotations

__all__ = [
    "GitHubAppAuth",
    "build_app_jwt",
    "load_private_key",
]

import time
from pathlib import Path

import httpx
import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from runner_gate.config import GitHubAppConfig
from runner_gate.constants import (
    APP_JWT_ALGORITHM,
    APP_JWT_CLOCK_SKEW_SECONDS,
    APP_JWT_LIFETIME_SECONDS,
    GITHUB_HTTP_TIMEOUT_SECONDS,
)
from runner_gate.exceptions import AuthenticationError, ConfigurationError
from runner_gate.github.client import github_headers
from runner_gate.security.secret import Secret
from runner_gate.telemetry.system_logger import get_system_logger


def load_private_key(path: Path) -> rsa.RSAPrivateKey:
    """Load the app's PEM private key.

    Args:
        path: Path to the PEM file.

    Returns:
        The RSA private key.

    Raises:
        ConfigurationError: If the file does not exist.
        AuthenticationError: If the file cannot be read or is not an RSA
            private key.
    """
    if not path.is_file():
        raise ConfigurationError(f"GitHub App private key file not found at {path}")

    try:
        pem = path.read_bytes()
    except OSError as e:
        raise AuthenticationError(f"Cannot read GitHub App private key {path}: {e.strerror}") from e

    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        # The library message can quote key material; keep only the type
        raise AuthenticationError(
            f"GitHub App private key {path} is not a valid unencrypted PEM private key"
        ) from e
    finally:
        del pem

    if not isinstance(key, rsa.RSAPrivateKey):
        raise AuthenticationError(f"GitHub App private key {path} is not an RSA key ({APP_JWT_ALGORITHM})")
    return key


def build_app_jwt(app_id: str, private_key: rsa.RSAPrivateKey, now: int | None = None) -> str:
    """Sign a GitHub App JWT.

    Args:
        app_id: GitHub App ID, used as the issuer claim.
        private_key: The app's RSA private key.
        now: Current Unix time (defaults to time.time()).

    Returns:
        Compact JWT "header.payload.signature" with unpadded base64url segments.

    Raises:
        AuthenticationError: If signing fails.
    """
    issued = int(time.time()) if now is None else now
    payload = {
        "iat": issued - APP_JWT_CLOCK_SKEW_SECONDS,
        "exp": issued + APP_JWT_LIFETIME_SECONDS,
        "iss": str(app_id),
    }
    try:
        return jwt.encode(payload, private_key, algorithm=APP_JWT_ALGORITHM)
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise AuthenticationError(f"Failed to sign GitHub App JWT: {type(e).__name__}") from e


class GitHubAppAuth:
    """Exchanges a freshly signed app JWT for an installation token.

    Usage:
        with GitHubAppAuth(app_config) as auth:
            with auth.create_installation_token() as token:
                client = GitHubClient(app_config.api_url, token)
    """

    def __init__(self, config: GitHubAppConfig, http_client: httpx.Client | None = None) -> None:
        """Initialize app authentication.

        Args:
            config: GitHub App settings.
            http_client: Optional httpx client (for testing).
        """
        self._config = config
        self._client = http_client or httpx.Client(timeout=GITHUB_HTTP_TIMEOUT_SECONDS)
        self._owns_client = http_client is None
        self._token_url = f"{config.api_url.rstrip('/')}/app/installations/{config.installation_id}/access_tokens"

    def __enter__(self) -> "GitHubAppAuth":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client:
            self._client.close()

    def create_installation_token(self) -> Secret:
        """Mint an app JWT and exchange it for an installation token.

        Returns:
            The installation token, wrapped in a Secret the caller must clear.

        Raises:
            ConfigurationError: If the private key file is missing.
            AuthenticationError: If signing or the exchange fails.
        """
        logger = get_system_logger()
        key = load_private_key(self._config.private_key_path)

        with Secret(build_app_jwt(self._config.app_id, key), label="app_jwt") as app_jwt:
            del key
            try:
                response = self._client.post(
                    self._token_url,
                    headers=github_headers(app_jwt.reveal()),
                )
            except httpx.HTTPError as e:
                raise AuthenticationError(
                    f"HTTP error requesting installation token: {type(e).__name__}"
                ) from e

        if not response.is_success:
            raise AuthenticationError(
                f"Installation token exchange failed with status {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise AuthenticationError("Installation token response is not valid JSON") from e

        raw_token = body.get("token") if isinstance(body, dict) else None
        del body
        if not isinstance(raw_token, str) or not raw_token:
            raise AuthenticationError("Installation token response did not contain a token")

        logger.info(
            {
                "event": "installation_token_issued",
                "message": f"Authenticated as GitHub App {self._config.app_id}",
                "app_id": self._config.app_id,
                "installation_id": self._config.installation_id,
            }
        )
        return Secret(raw_token, label="installation_token")
