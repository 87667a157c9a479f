"""Workflow allowlist gate.

Refuses a job unless the workflow that triggered it is one this runner was
provisioned for. The workflow comes from GITHUB_WORKFLOW_REF
("owner/repo/.github/workflows/x.yml@ref"); the owner/repo prefix and the
ref are dropped and the remaining path is compared with the extension
removed, so "copilot-setup-steps.yml" and "copilot-setup-steps.yaml" are the
same entry.
"""

from __future__ import annotations

__all__ = ["check_workflow_allowed", "normalize_workflow_path"]

from collections.abc import Sequence

from runner_gate.exceptions import WorkflowNotAllowedError, WorkflowReferenceError
from runner_gate.github.workflow_ref import WorkflowReference, parse_workflow_ref_env
from runner_gate.telemetry.system_logger import get_system_logger

_WORKFLOW_EXTENSIONS = (".yml", ".yaml")


def normalize_workflow_path(path: str) -> str:
    """Strip leading "./" or "/" and a trailing .yml/.yaml extension."""
    normalized = path.strip()
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.lstrip("/")
    for extension in _WORKFLOW_EXTENSIONS:
        if normalized.endswith(extension):
            return normalized[: -len(extension)]
    return normalized


def check_workflow_allowed(workflow_ref: str | None, allowed: Sequence[str]) -> WorkflowReference:
    """Check the triggering workflow against the allowlist.

    Args:
        workflow_ref: GITHUB_WORKFLOW_REF value.
        allowed: Allowed repo-relative workflow paths (extension optional).

    Returns:
        The parsed reference of the allowed workflow.

    Raises:
        WorkflowNotAllowedError: If workflow_ref is missing, malformed, or
            not on the list.
    """
    logger = get_system_logger()
    if not workflow_ref:
        raise WorkflowNotAllowedError("GITHUB_WORKFLOW_REF is not set; cannot identify the triggering workflow")

    try:
        reference = parse_workflow_ref_env(workflow_ref)
    except WorkflowReferenceError as e:
        raise WorkflowNotAllowedError(f"Cannot identify the triggering workflow: {e}") from e

    candidate = normalize_workflow_path(reference.path)
    permitted = {normalize_workflow_path(entry) for entry in allowed if entry.strip()}
    if candidate not in permitted:
        logger.error(
            {
                "event": "workflow_refused",
                "message": f"Workflow {reference.path} in {reference.repository} is not allowed on this runner",
                "workflow": reference.path,
                "repository": reference.repository,
            }
        )
        raise WorkflowNotAllowedError(f"Workflow {reference.path} is not allowed on this runner")

    logger.info(
        {
            "event": "workflow_allowed",
            "message": f"Workflow {reference.path} is allowed",
            "workflow": reference.path,
            "repository": reference.repository,
        }
    )
    return reference
