"""Security alert issues for scan findings.

One issue per aborted job, listing every finding with its source repository.
Posting is best effort: a failure is logged and reported to the caller, but
it never raises. The gate aborts the job whether or not the issue exists.
"""

from __future__ import annotations

__all__ = [
    "AlertIssue",
    "build_alert",
    "post_alert",
]

from collections.abc import Sequence
from dataclasses import dataclass, field

from runner_gate.config import RunIdentity
from runner_gate.constants import ALERT_TITLE_PREFIX
from runner_gate.github.client import GitHubAPIError, GitHubClient
from runner_gate.scanner.engine import Finding
from runner_gate.telemetry.system_logger import get_system_logger


@dataclass(frozen=True)
class AlertIssue:
    """Issue payload for a blocked run."""

    title: str
    body: str
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)


def build_alert(
    findings: Sequence[Finding],
    run: RunIdentity,
    labels: Sequence[str] = (),
    assignees: Sequence[str] = (),
) -> AlertIssue:
    """Build the alert issue for a set of findings.

    Args:
        findings: Non-empty findings from the scanner.
        run: The run that was blocked.
        labels: Issue labels.
        assignees: Issue assignees.

    Returns:
        AlertIssue whose body has one bullet per finding.
    """
    lines = [
        f"Run [{run.run_id}]({run.run_url}) on `{run.ref_name}` (commit `{run.sha}`) was cancelled "
        "because its workflow files contain suspicious patterns.",
        "",
        "## Findings",
        "",
    ]
    for finding in findings:
        line_list = ", ".join(str(n) for n in finding.line_numbers)
        lines.append(
            f"- `{finding.pattern}` found in `{finding.file_path.name}` (from: {finding.repository})"
            f" on line(s) {line_list} [{finding.rule_name}]"
        )
    lines += [
        "",
        "Review the workflow and any reusable workflows it calls before re-running the job.",
    ]
    return AlertIssue(
        title=f"{ALERT_TITLE_PREFIX}: suspicious workflow content on {run.ref_name}",
        body="\n".join(lines),
        labels=list(labels),
        assignees=list(assignees),
    )


def post_alert(client: GitHubClient, repository: str, issue: AlertIssue) -> bool:
    """Create the alert issue.

    Returns:
        True if the issue was created, False otherwise (already logged).
    """
    logger = get_system_logger()
    try:
        created = client.create_issue(
            repository,
            title=issue.title,
            body=issue.body,
            labels=issue.labels,
            assignees=issue.assignees,
        )
    except GitHubAPIError as e:
        logger.error(
            {
                "event": "alert_post_failed",
                "message": f"Failed to create security alert issue in {repository}: {e}",
                "repository": repository,
                "status_code": e.status_code,
            }
        )
        return False

    logger.info(
        {
            "event": "alert_posted",
            "message": f"Created security alert issue {created.get('html_url', '')}".rstrip(),
            "repository": repository,
            "issue_number": created.get("number"),
        }
    )
    return True
