"""Check-workflow command: refuse jobs from workflows not on the allowlist."""

from __future__ import annotations

__all__ = ["check_workflow"]

from pathlib import Path

import click

from runner_gate.allowlist import check_workflow_allowed
from runner_gate.config import AllowlistConfig
from runner_gate.github.workflow_ref import WorkflowReference

from ..styling import style_success
from .common import env_file_option, load_hook_settings, run_hook


@click.command("check-workflow")
@env_file_option
@click.option(
    "--workflow-ref",
    envvar="GITHUB_WORKFLOW_REF",
    default=None,
    help="owner/repo/path@ref of the triggering workflow (default: $GITHUB_WORKFLOW_REF)",
)
def check_workflow(env_file: Path | None, workflow_ref: str | None) -> None:
    """Exit 21 unless the triggering workflow is allowed on this runner.

    Allowed paths come from RUNNER_GATE_ALLOWED_WORKFLOWS (comma-separated,
    repo-relative, .yml/.yaml extension optional).
    """

    def _run() -> WorkflowReference:
        settings = load_hook_settings(env_file)
        config = AllowlistConfig.from_settings(settings)
        return check_workflow_allowed(workflow_ref, config.allowed_workflows)

    reference = run_hook("check-workflow", _run)
    click.echo(style_success(f"Workflow {reference.path} is allowed"))
