"""Registry login command: the job-prepare credential broker."""

from __future__ import annotations

__all__ = ["registry_login"]

from pathlib import Path

import click

from runner_gate.config import RegistryBrokerConfig
from runner_gate.registry.broker import run_registry_broker

from ..styling import style_success
from .common import env_file_option, load_hook_settings, run_hook


@click.command("registry-login")
@env_file_option
def registry_login(env_file: Path | None) -> None:
    """Log the job's container runtime in to the private registry.

    Exchanges the job's OIDC token for short-lived AWS credentials, reads the
    registry secret from Secrets Manager and publishes a Docker config.json
    (mode 0600) for the container step. No credential outlives the command.

    Required settings: ROLE_ARN, AWS_REGION, SECRET_ID, ACR_REGISTRY.
    """

    def _run() -> tuple[str, Path]:
        settings = load_hook_settings(env_file)
        config = RegistryBrokerConfig.from_settings(settings)
        return config.registry, run_registry_broker(config)

    registry, published = run_hook("registry-login", _run)
    click.echo(style_success(f"Logged in to {registry} ({published})"))
