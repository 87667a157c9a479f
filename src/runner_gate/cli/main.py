"""Main CLI entry point for runner-gate.

Defines the CLI group and registers all hook commands.

Commands:
    scan            - Job-started workflow provenance scan
    registry-login  - Job-prepare registry credential broker
    check-workflow  - Workflow allowlist gate

Subcommand help:
    runner-gate COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import sys

import click

from runner_gate import __version__

from .commands.check_workflow import check_workflow
from .commands.registry_login import registry_login
from .commands.scan import scan


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Runner hook setup:
  ACTIONS_RUNNER_HOOK_JOB_STARTED  ->  runner-gate check-workflow && runner-gate scan
  ACTIONS_RUNNER_CONTAINER_HOOKS   ->  runner-gate registry-login (prepare_job)

Exit codes:
  0   job may proceed
  13  GitHub App authentication failed
  16  configuration missing or invalid
  17  workflow run metadata unavailable
  18  OIDC / STS / Secrets Manager step failed
  19  registry login or Docker config publish failed
  20  suspicious workflow content found
  21  workflow not allowed on this runner
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """runner-gate: pre-job security hooks for self-hosted CI runners."""
    if version:
        click.echo(f"runner-gate {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(check_workflow)
cli.add_command(registry_login)
cli.add_command(scan)


def main() -> None:
    """CLI entry point."""
    cli()
