"""Job-prepare hook: short-lived registry credentials for the job container.

    OIDC token -> STS AssumeRoleWithWebIdentity -> Secrets Manager
        -> docker login (private config dir) -> atomic publish

Each credential is cleared as soon as the next step has consumed it. None of
them is ever exported to the process environment. The conventional
credential variables (AWS_*, ACR_*, OIDC_TOKEN) are scrubbed on exit in case
a wrapper script exported them.
"""

from __future__ import annotations

__all__ = ["SCRUBBED_ENV_VARIABLES", "run_registry_broker"]

import os
import subprocess
from collections.abc import Callable, MutableMapping
from pathlib import Path
from typing import Any

import httpx

from runner_gate.config import RegistryBrokerConfig
from runner_gate.registry.aws import assume_role_with_web_identity, fetch_registry_secret
from runner_gate.registry.installer import RegistryCredentialInstaller
from runner_gate.registry.oidc import OIDCRequestContext, request_federated_token
from runner_gate.security.cleanup import CleanupRegistry
from runner_gate.telemetry.system_logger import get_system_logger

SCRUBBED_ENV_VARIABLES: tuple[str, ...] = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "ACR_USERNAME",
    "ACR_PASSWORD",
    "OIDC_TOKEN",
    "ACTIONS_ID_TOKEN_REQUEST_TOKEN",
)


def _scrub_environment(environ: MutableMapping[str, str]) -> None:
    for name in SCRUBBED_ENV_VARIABLES:
        environ.pop(name, None)


def run_registry_broker(
    config: RegistryBrokerConfig,
    environ: MutableMapping[str, str] | None = None,
    *,
    http_client: httpx.Client | None = None,
    sts_client: Any | None = None,
    secrets_client: Any | None = None,
    runner: Callable[..., subprocess.CompletedProcess[Any]] = subprocess.run,
    docker_bin: str | None = None,
    cleanup: CleanupRegistry | None = None,
) -> Path:
    """Broker registry credentials for the current job.

    Args:
        config: Broker settings.
        environ: Job environment (defaults to os.environ). Credential
            variables are removed from it before returning.
        http_client: Optional httpx client for the OIDC request (for testing).
        sts_client: Optional boto3 STS client (for testing).
        secrets_client: Optional boto3 Secrets Manager client (for testing).
        runner: subprocess.run replacement (for testing).
        docker_bin: Explicit docker binary; looked up on PATH if None.
        cleanup: CleanupRegistry to use; a fresh one is installed if None.

    Returns:
        Path of the published Docker config.

    Raises:
        CredentialBrokerError: OIDC, STS or Secrets Manager step failed.
        CredentialStoreError: docker login or publishing failed.
    """
    environ = os.environ if environ is None else environ
    logger = get_system_logger()
    target = config.resolved_docker_config_path

    logger.info(
        {
            "event": "registry_broker_started",
            "message": f"Brokering credentials for registry {config.registry}",
            "registry": config.registry,
            "role_arn": config.role_arn,
        }
    )

    registry_cleanup = cleanup or CleanupRegistry()
    try:
        with registry_cleanup:
            context = OIDCRequestContext.from_environ(environ)
            token = request_federated_token(context, http_client=http_client)
            credential = assume_role_with_web_identity(
                token,
                role_arn=config.role_arn,
                region=config.aws_region,
                session_name=config.role_session_name,
                sts_client=sts_client,
            )
            secret = fetch_registry_secret(
                credential,
                secret_id=config.secret_id,
                region=config.aws_region,
                username_key=config.username_key,
                password_key=config.password_key,
                secrets_client=secrets_client,
            )
            installer = RegistryCredentialInstaller(
                config.registry,
                target,
                registry_cleanup,
                docker_bin=docker_bin,
                runner=runner,
            )
            published = installer.install(secret)
    finally:
        _scrub_environment(environ)

    logger.info(
        {
            "event": "registry_broker_completed",
            "message": f"Registry {config.registry} is ready for the job container",
            "registry": config.registry,
            "path": str(published),
        }
    )
    return published
