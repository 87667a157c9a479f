"""AWS side of the registry broker: STS role assumption and Secrets Manager.

Credentials are passed to boto3 explicitly and never placed in the process
environment. Both clients make a single attempt per call; a failed broker run
fails the job.
"""

from __future__ import annotations

__all__ = [
    "CloudCredential",
    "RegistrySecret",
    "assume_role_with_web_identity",
    "fetch_registry_secret",
]

import json
from dataclasses import dataclass
from datetime import datetime
from types import TracebackType
from typing import Any

import boto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from runner_gate.constants import ROLE_SESSION_DURATION_SECONDS
from runner_gate.exceptions import CredentialBrokerError
from runner_gate.security.secret import Secret
from runner_gate.telemetry.system_logger import get_system_logger

# One attempt per call, no SDK-level retries
_NO_RETRY = {"total_max_attempts": 1, "mode": "standard"}


class _ClearOnExit:
    """Mixin: clear() on context exit."""

    def clear(self) -> None:  # pragma: no cover - overridden
        raise NotImplementedError

    def __enter__(self) -> Any:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.clear()


@dataclass
class CloudCredential(_ClearOnExit):
    """Temporary AWS credentials from AssumeRoleWithWebIdentity."""

    access_key_id: Secret
    secret_access_key: Secret
    session_token: Secret
    expiration: datetime | None = None

    def clear(self) -> None:
        self.access_key_id.clear()
        self.secret_access_key.clear()
        self.session_token.clear()


@dataclass
class RegistrySecret(_ClearOnExit):
    """Registry username/password pair."""

    username: Secret
    password: Secret

    def clear(self) -> None:
        self.username.clear()
        self.password.clear()


def _aws_error(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code", "ClientError")
    return type(e).__name__


def assume_role_with_web_identity(
    web_identity_token: Secret,
    *,
    role_arn: str,
    region: str,
    session_name: str,
    duration_seconds: int = ROLE_SESSION_DURATION_SECONDS,
    sts_client: Any | None = None,
) -> CloudCredential:
    """Exchange an OIDC token for temporary AWS credentials.

    The token is cleared whether or not the exchange succeeds.

    Args:
        web_identity_token: OIDC token for the sts.amazonaws.com audience.
        role_arn: Role to assume.
        region: STS region.
        session_name: Role session name.
        duration_seconds: Credential lifetime.
        sts_client: Optional boto3 STS client (for testing).

    Returns:
        CloudCredential the caller must clear.

    Raises:
        CredentialBrokerError: If the call fails or returns incomplete credentials.
    """
    client = sts_client or boto3.client(
        "sts",
        region_name=region,
        config=Config(signature_version=UNSIGNED, retries=_NO_RETRY),
    )
    try:
        with web_identity_token as token:
            response = client.assume_role_with_web_identity(
                RoleArn=role_arn,
                RoleSessionName=session_name,
                WebIdentityToken=token.reveal(),
                DurationSeconds=duration_seconds,
            )
    except (ClientError, BotoCoreError) as e:
        raise CredentialBrokerError(f"Failed to assume IAM role {role_arn}: {_aws_error(e)}") from e

    raw = response.get("Credentials") or {}
    del response
    fields = ("AccessKeyId", "SecretAccessKey", "SessionToken")
    missing = [name for name in fields if not raw.get(name)]
    if missing:
        raw.clear()
        raise CredentialBrokerError(
            f"Failed to assume IAM role {role_arn}: response is missing {', '.join(missing)}"
        )

    credential = CloudCredential(
        access_key_id=Secret(raw["AccessKeyId"], label="aws_access_key_id"),
        secret_access_key=Secret(raw["SecretAccessKey"], label="aws_secret_access_key"),
        session_token=Secret(raw["SessionToken"], label="aws_session_token"),
        expiration=raw.get("Expiration"),
    )
    raw.clear()

    get_system_logger().info(
        {
            "event": "role_assumed",
            "message": f"Assumed IAM role {role_arn} for {duration_seconds}s",
            "role_arn": role_arn,
            "duration_seconds": duration_seconds,
        }
    )
    return credential


def fetch_registry_secret(
    credential: CloudCredential,
    *,
    secret_id: str,
    region: str,
    username_key: str = "username",
    password_key: str = "password",
    secrets_client: Any | None = None,
) -> RegistrySecret:
    """Read the registry username/password from Secrets Manager.

    The cloud credential is cleared once the call has been made.

    Args:
        credential: Temporary AWS credentials.
        secret_id: Secret name or ARN.
        region: Secrets Manager region.
        username_key: JSON field holding the username.
        password_key: JSON field holding the password.
        secrets_client: Optional boto3 Secrets Manager client (for testing).

    Returns:
        RegistrySecret the caller must clear.

    Raises:
        CredentialBrokerError: If the call fails, the payload is empty or not
            a JSON object, or either field is missing.
    """
    try:
        with credential:
            client = secrets_client or boto3.client(
                "secretsmanager",
                region_name=region,
                aws_access_key_id=credential.access_key_id.reveal(),
                aws_secret_access_key=credential.secret_access_key.reveal(),
                aws_session_token=credential.session_token.reveal(),
                config=Config(retries=_NO_RETRY),
            )
            response = client.get_secret_value(SecretId=secret_id)
    except (ClientError, BotoCoreError) as e:
        raise CredentialBrokerError(f"Failed to read secret {secret_id}: {_aws_error(e)}") from e

    payload = response.get("SecretString")
    del response
    if not payload:
        raise CredentialBrokerError(f"Secret {secret_id} has an empty SecretString")

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        # The decoder message quotes the document; drop it
        raise CredentialBrokerError(f"Secret {secret_id} is not valid JSON") from None
    finally:
        del payload

    if not isinstance(data, dict):
        raise CredentialBrokerError(f"Secret {secret_id} is not a JSON object")

    username = data.get(username_key)
    password = data.get(password_key)
    data.clear()
    if not isinstance(username, str) or not username or not isinstance(password, str) or not password:
        raise CredentialBrokerError(
            f"Could not parse {username_key!r} or {password_key!r} from secret {secret_id}"
        )

    get_system_logger().info(
        {
            "event": "registry_secret_fetched",
            "message": f"Fetched registry credentials from secret {secret_id}",
            "secret_id": secret_id,
        }
    )
    return RegistrySecret(
        username=Secret(username, label="registry_username"),
        password=Secret(password, label="registry_password"),
    )
