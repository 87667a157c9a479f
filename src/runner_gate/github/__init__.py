"""GitHub integration for the workflow scan hook.

This module provides:
- GitHub App authentication (app JWT + installation token exchange)
- A minimal REST client (run metadata, file content, issues)
- Workflow reference parsing and run resolution
"""

from runner_gate.github.app_auth import GitHubAppAuth, build_app_jwt, load_private_key
from runner_gate.github.client import GitHubAPIError, GitHubClient
from runner_gate.github.resolver import (
    DownloadFailure,
    ResolutionResult,
    ResolverState,
    WorkflowResolver,
)
from runner_gate.github.workflow_ref import (
    WorkflowReference,
    parse_primary_path,
    parse_referenced_workflow,
    parse_workflow_ref_env,
    strip_ref,
)

__all__ = [
    # Authentication
    "GitHubAppAuth",
    "build_app_jwt",
    "load_private_key",
    # REST client
    "GitHubAPIError",
    "GitHubClient",
    # Resolution
    "DownloadFailure",
    "ResolutionResult",
    "ResolverState",
    "WorkflowResolver",
    # References
    "WorkflowReference",
    "parse_primary_path",
    "parse_referenced_workflow",
    "parse_workflow_ref_env",
    "strip_ref",
]
