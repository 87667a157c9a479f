"""Custom exceptions for runner-gate.

Every failure that must stop the CI job derives from CriticalSecurityFailure
and carries its own process exit code. The runner platform only looks at the
exit status, so the code is the whole contract with the orchestrator.

Fatal failures (job aborts):
    - ConfigurationError: env file or key file missing/invalid
    - AuthenticationError: app JWT signing or installation token exchange failed
    - WorkflowResolutionError: run metadata could not be fetched
    - CredentialBrokerError: OIDC, STS or Secrets Manager step failed
    - CredentialStoreError: registry login or config publish failed
    - SecurityFindingsDetected: scanner matched at least one rule
    - WorkflowNotAllowedError: triggering workflow is not on the allowlist

Input errors (handled by callers):
    - WorkflowReferenceError: malformed workflow reference string

Usage:
    from runner_gate.exceptions import AuthenticationError, ConfigurationError
"""

from __future__ import annotations

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "CredentialBrokerError",
    "CredentialStoreError",
    "CriticalSecurityFailure",
    "SecurityFindingsDetected",
    "WorkflowNotAllowedError",
    "WorkflowReferenceError",
    "WorkflowResolutionError",
]


class CriticalSecurityFailure(Exception):
    """Base exception for failures that must abort the CI job.

    These are not retried. They should propagate to the CLI, which logs them
    once and exits with exit_code.

    Attributes:
        exit_code: Process exit code (13-21 reserved for runner-gate failures).
        failure_type: Category string for structured logging.
    """

    exit_code: int = 1
    failure_type: str = "unknown"


class AuthenticationError(CriticalSecurityFailure):
    """GitHub App authentication failed.

    Raised when:
    - The private key cannot be read or is not a valid private key
    - The installation token exchange fails or returns no token

    Exit code 13 indicates authentication failure.
    """

    exit_code = 13
    failure_type = "authentication_failure"


class ConfigurationError(CriticalSecurityFailure):
    """Configuration is invalid or incomplete.

    Raised when:
    - Required env file keys or run variables are missing
    - A configured file (private key, rules file) does not exist
    - The rules file contains an invalid regular expression

    Messages name the missing field but never echo values.
    Exit code 16 indicates configuration failure.
    """

    exit_code = 16
    failure_type = "configuration_failure"


class WorkflowResolutionError(CriticalSecurityFailure):
    """Run metadata could not be fetched, so provenance is unknown.

    Scanning cannot proceed without knowing which workflow ran.
    Exit code 17 indicates resolution failure.
    """

    exit_code = 17
    failure_type = "resolution_failure"


class CredentialBrokerError(CriticalSecurityFailure):
    """A step of the OIDC -> STS -> Secrets Manager chain failed.

    Exit code 18 indicates credential broker failure.
    """

    exit_code = 18
    failure_type = "credential_broker_failure"


class CredentialStoreError(CriticalSecurityFailure):
    """Registry login or publishing the Docker config failed.

    The temporary credential directory is still removed.
    Exit code 19 indicates credential store failure.
    """

    exit_code = 19
    failure_type = "credential_store_failure"


class SecurityFindingsDetected(CriticalSecurityFailure):
    """The scanner matched at least one risk rule.

    Not an error in the exceptional sense: it is the detection outcome that
    aborts the job. Raised whether or not the alert issue was created.

    Attributes:
        findings: The findings that triggered the abort.
        alert_posted: Whether the alert issue was created.
    """

    exit_code = 20
    failure_type = "security_findings"

    def __init__(self, findings: list, *, alert_posted: bool) -> None:
        self.findings = findings
        self.alert_posted = alert_posted
        super().__init__(f"{len(findings)} suspicious pattern(s) found in workflow files")


class WorkflowNotAllowedError(CriticalSecurityFailure):
    """Triggering workflow is not on this runner's allowlist.

    Exit code 21 indicates the workflow was refused.
    """

    exit_code = 21
    failure_type = "workflow_not_allowed"


class WorkflowReferenceError(ValueError):
    """A workflow reference string could not be parsed.

    Raised for empty values, a missing /.github/ segment, an empty
    repository prefix or a reference without a resolvable ref.
    """
