"""Job-started gate: resolve, scan, alert, abort.

    authenticate -> resolve workflows -> scan -> (findings?) alert + abort

Returns normally only when the scan found nothing. Every other outcome
raises a CriticalSecurityFailure whose exit code makes the runner cancel the
job. The installation token is cleared before returning or raising.
"""

from __future__ import annotations

__all__ = ["GateResult", "run_workflow_gate"]

from dataclasses import dataclass

import httpx

from runner_gate.alerting import build_alert, post_alert
from runner_gate.config import RunIdentity, ScanConfig
from runner_gate.constants import GITHUB_HTTP_TIMEOUT_SECONDS
from runner_gate.exceptions import SecurityFindingsDetected
from runner_gate.github.app_auth import GitHubAppAuth
from runner_gate.github.client import GitHubClient
from runner_gate.github.resolver import ResolutionResult, WorkflowResolver
from runner_gate.scanner.engine import Finding, scan_directory
from runner_gate.scanner.rules import load_rules
from runner_gate.telemetry.system_logger import get_system_logger


@dataclass
class GateResult:
    """Outcome of a clean scan."""

    resolution: ResolutionResult
    findings: list[Finding]


def run_workflow_gate(
    config: ScanConfig,
    run: RunIdentity,
    http_client: httpx.Client | None = None,
) -> GateResult:
    """Run the workflow provenance scan for one job.

    Args:
        config: Scan settings.
        run: Identity of the current run.
        http_client: Optional shared httpx client (for testing).

    Returns:
        GateResult with no findings.

    Raises:
        ConfigurationError: Key file or rules file missing/invalid.
        AuthenticationError: Installation token could not be obtained.
        WorkflowResolutionError: Run metadata could not be fetched.
        SecurityFindingsDetected: At least one rule matched; the alert issue
            was attempted first.
    """
    logger = get_system_logger()
    # Rules load before any network call so a bad rules file fails fast
    rules = load_rules(config.rules_file)

    client = http_client or httpx.Client(timeout=GITHUB_HTTP_TIMEOUT_SECONDS)
    try:
        with GitHubAppAuth(config.app, http_client=client) as auth, auth.create_installation_token() as token:
            with GitHubClient(config.app.api_url, token, http_client=client) as github:
                resolver = WorkflowResolver(github, config.resolved_download_dir, max_workers=config.max_workers)
                resolution = resolver.resolve(run)

                findings = scan_directory(resolution.download_dir, resolution.provenance, rules)
                if not findings:
                    logger.info(
                        {
                            "event": "gate_passed",
                            "message": "No suspicious patterns found; job may proceed",
                            "run_id": run.run_id,
                        }
                    )
                    return GateResult(resolution=resolution, findings=findings)

                issue = build_alert(findings, run, config.alert_labels, config.alert_assignees)
                alert_posted = post_alert(github, run.repository, issue)
    finally:
        if http_client is None:
            client.close()

    logger.error(
        {
            "event": "gate_blocked",
            "message": f"Blocking run {run.run_id}: {len(findings)} suspicious pattern(s) found",
            "run_id": run.run_id,
            "findings": len(findings),
            "alert_posted": alert_posted,
        }
    )
    raise SecurityFindingsDetected(findings, alert_posted=alert_posted)
