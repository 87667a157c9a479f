"""Scan command: the job-started workflow provenance gate.

Exit status 0 lets the job proceed; any other status aborts it.
"""

from __future__ import annotations

__all__ = ["scan"]

from pathlib import Path

import click

from runner_gate.config import RunIdentity, ScanConfig
from runner_gate.exceptions import SecurityFindingsDetected
from runner_gate.gate import GateResult, run_workflow_gate

from ..styling import style_success, style_warning
from .common import env_file_option, load_hook_settings, run_hook


@click.command()
@env_file_option
def scan(env_file: Path | None) -> None:
    """Scan this run's workflow files before the job starts.

    Downloads the triggering workflow and every reusable workflow it calls,
    searches them for risky shell patterns, and on a match opens a security
    alert issue and exits with status 20.

    Examples:
        runner-gate scan
        runner-gate scan --env-file /etc/runner-gate.env
    """

    def _run() -> GateResult:
        settings = load_hook_settings(env_file)
        config = ScanConfig.from_settings(settings)
        run = RunIdentity.from_environ()
        try:
            return run_workflow_gate(config, run)
        except SecurityFindingsDetected as e:
            if not e.alert_posted:
                click.echo(style_warning("security alert issue could not be created"), err=True)
            raise

    result = run_hook("scan", _run)
    scanned = len(result.resolution.downloaded)
    click.echo(style_success(f"No suspicious patterns found in {scanned} workflow file(s)"))
