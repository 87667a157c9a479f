"""Federated identity token request from the Actions OIDC endpoint.

The runner exposes ACTIONS_ID_TOKEN_REQUEST_URL and a bearer
ACTIONS_ID_TOKEN_REQUEST_TOKEN to jobs with `id-token: write`. We ask for a
token scoped to the AWS STS audience and return it wrapped in a Secret.
"""

from __future__ import annotations

__all__ = [
    "OIDCRequestContext",
    "request_federated_token",
]

import os
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from runner_gate.constants import OIDC_AUDIENCE, OIDC_HTTP_TIMEOUT_SECONDS, USER_AGENT
from runner_gate.exceptions import CredentialBrokerError
from runner_gate.security.secret import Secret
from runner_gate.telemetry.system_logger import get_system_logger

_REQUEST_URL_VARIABLE = "ACTIONS_ID_TOKEN_REQUEST_URL"
_REQUEST_TOKEN_VARIABLE = "ACTIONS_ID_TOKEN_REQUEST_TOKEN"


@dataclass
class OIDCRequestContext:
    """Where and how to request the OIDC token.

    Attributes:
        request_url: Endpoint URL from the runner (already carries a query string).
        request_token: Bearer credential for the endpoint.
    """

    request_url: str
    request_token: Secret

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "OIDCRequestContext":
        """Read the endpoint and its bearer token from the job environment.

        Raises:
            CredentialBrokerError: If either variable is missing or empty.
        """
        environ = os.environ if environ is None else environ
        missing = [name for name in (_REQUEST_URL_VARIABLE, _REQUEST_TOKEN_VARIABLE) if not environ.get(name)]
        if missing:
            raise CredentialBrokerError(
                f"OIDC token request is not available (missing {', '.join(missing)});"
                " the job needs 'id-token: write' permission"
            )
        return cls(
            request_url=environ[_REQUEST_URL_VARIABLE],
            request_token=Secret(environ[_REQUEST_TOKEN_VARIABLE], label="oidc_request_token"),
        )


def request_federated_token(
    context: OIDCRequestContext,
    audience: str = OIDC_AUDIENCE,
    http_client: httpx.Client | None = None,
) -> Secret:
    """Request an OIDC token for audience.

    The request bearer token in context is cleared before returning.

    Args:
        context: Endpoint and bearer token.
        audience: Token audience (AWS STS by default).
        http_client: Optional httpx client (for testing).

    Returns:
        The OIDC token in a Secret.

    Raises:
        CredentialBrokerError: On transport error, non-2xx, or an empty token.
    """
    client = http_client or httpx.Client(timeout=OIDC_HTTP_TIMEOUT_SECONDS)
    try:
        with context.request_token as request_token:
            response = client.get(
                context.request_url,
                params={"audience": audience},
                headers={
                    "Authorization": f"bearer {request_token.reveal()}",
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                },
            )
    except httpx.HTTPError as e:
        raise CredentialBrokerError(f"HTTP error requesting OIDC token: {type(e).__name__}") from e
    finally:
        if http_client is None:
            client.close()

    if not response.is_success:
        raise CredentialBrokerError(f"OIDC token request failed with status {response.status_code}")

    try:
        body = response.json()
    except ValueError as e:
        raise CredentialBrokerError("OIDC token response is not valid JSON") from e

    value = body.get("value") if isinstance(body, dict) else None
    del body
    if not isinstance(value, str) or not value.strip():
        raise CredentialBrokerError("Failed to get OIDC token: response contained no value")

    get_system_logger().info(
        {
            "event": "oidc_token_issued",
            "message": f"Obtained OIDC token for audience {audience}",
            "audience": audience,
        }
    )
    return Secret(value, label="oidc_token")
