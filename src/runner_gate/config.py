"""Runner configuration for runner-gate.

Settings come from the protected env file written by the runner image build
(default /opt/runner.env, KEY=VALUE lines parsed with python-dotenv), with the
process environment as a fallback for keys the file does not set. Run
identity (GITHUB_REPOSITORY, GITHUB_RUN_ID, ...) always comes from the
process environment supplied by the runner.

Each hook loads only the section it needs:

    settings = load_settings(env_file)
    broker_config = RegistryBrokerConfig.from_settings(settings)

Missing keys raise ConfigurationError naming the keys. Values are never
included in error messages.
"""

from __future__ import annotations

__all__ = [
    "AllowlistConfig",
    "GitHubAppConfig",
    "RegistryBrokerConfig",
    "RunIdentity",
    "ScanConfig",
    "load_settings",
    "resolve_env_file",
]

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from runner_gate.constants import (
    DEFAULT_ALERT_LABELS,
    DEFAULT_DOCKER_CONFIG_PATH,
    DEFAULT_DOWNLOAD_DIR,
    DEFAULT_DOWNLOAD_WORKERS,
    DEFAULT_ENV_FILE,
    DEFAULT_ROLE_SESSION_NAME,
    ENV_FILE_VARIABLE,
    GITHUB_API_URL,
)
from runner_gate.exceptions import ConfigurationError
from runner_gate.telemetry.system_logger import get_system_logger


# =============================================================================
# Settings loading
# =============================================================================


def resolve_env_file(explicit: Path | None = None, environ: Mapping[str, str] | None = None) -> tuple[Path, bool]:
    """Decide which env file to read.

    Args:
        explicit: Path given on the command line, if any.
        environ: Process environment (defaults to os.environ).

    Returns:
        (path, required) - required is True when the path was chosen
        explicitly (CLI or RUNNER_GATE_ENV_FILE) rather than defaulted.
    """
    environ = os.environ if environ is None else environ
    if explicit is not None:
        return explicit, True
    from_env = environ.get(ENV_FILE_VARIABLE)
    if from_env:
        return Path(from_env), True
    return DEFAULT_ENV_FILE, False


def load_settings(
    env_file: Path | None = None,
    *,
    required: bool = False,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge the env file over the process environment.

    Args:
        env_file: Env file path. None means use resolve_env_file() defaults.
        required: Fail if the file does not exist.
        environ: Process environment (defaults to os.environ).

    Returns:
        Flat mapping of setting name to value. Empty values are dropped.

    Raises:
        ConfigurationError: If a required env file is missing or unreadable.
    """
    environ = os.environ if environ is None else environ
    if env_file is None:
        env_file, required = resolve_env_file(environ=environ)

    settings: dict[str, str] = {key: value for key, value in environ.items() if value}

    if not env_file.is_file():
        if required:
            raise ConfigurationError(f"Env file not found at {env_file}")
        get_system_logger().info(
            {
                "event": "env_file_absent",
                "message": f"No env file at {env_file}, using process environment only",
                "path": str(env_file),
            }
        )
        return settings

    try:
        file_values = dotenv_values(env_file)
    except OSError as e:
        raise ConfigurationError(f"Could not read env file {env_file}: {e.strerror}") from e

    for key, value in file_values.items():
        if value:
            settings[key] = value

    get_system_logger().info(
        {
            "event": "env_file_loaded",
            "message": f"Loaded variables from {env_file}",
            "path": str(env_file),
        }
    )
    return settings


def _require(settings: Mapping[str, str], keys: tuple[str, ...], purpose: str) -> None:
    missing = [key for key in keys if not settings.get(key)]
    if missing:
        raise ConfigurationError(f"Missing required {purpose} configuration: {', '.join(missing)}")


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _validate(model: type[BaseModel], data: dict[str, Any], purpose: str) -> Any:
    """Validate data, reporting field names and reasons but never input values."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors(include_input=False)
        )
        raise ConfigurationError(f"Invalid {purpose} configuration: {problems}") from e


# =============================================================================
# Run identity (from the runner's process environment)
# =============================================================================


class RunIdentity(BaseModel):
    """Identity of the workflow run this job belongs to.

    Attributes:
        repository: "owner/repo" the run belongs to.
        run_id: Numeric workflow run ID.
        sha: Commit SHA the run was triggered for.
        ref: Full git ref (e.g., "refs/heads/main").
        workflow_ref: "owner/repo/path@ref" of the triggering workflow, if known.
        server_url: GitHub web URL, used for run links in alerts.
    """

    model_config = ConfigDict(frozen=True)

    repository: str = Field(min_length=3, pattern=r"^[^/\s]+/[^/\s]+$")
    run_id: int = Field(gt=0)
    sha: str = Field(min_length=1)
    ref: str = Field(min_length=1)
    workflow_ref: str | None = None
    server_url: str = "https://github.com"

    @property
    def ref_name(self) -> str:
        """Branch or tag name: the last segment of ref."""
        return self.ref.rstrip("/").rsplit("/", 1)[-1]

    @property
    def run_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/{self.repository}/actions/runs/{self.run_id}"

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "RunIdentity":
        """Build from the GITHUB_* variables the runner exports.

        Raises:
            ConfigurationError: If a required variable is missing or invalid.
        """
        environ = os.environ if environ is None else environ
        _require(
            environ,
            ("GITHUB_REPOSITORY", "GITHUB_RUN_ID", "GITHUB_SHA", "GITHUB_REF"),
            "run identity",
        )
        data: dict[str, Any] = {
            "repository": environ["GITHUB_REPOSITORY"],
            "run_id": environ["GITHUB_RUN_ID"],
            "sha": environ["GITHUB_SHA"],
            "ref": environ["GITHUB_REF"],
            "workflow_ref": environ.get("GITHUB_WORKFLOW_REF") or None,
        }
        if environ.get("GITHUB_SERVER_URL"):
            data["server_url"] = environ["GITHUB_SERVER_URL"]
        return _validate(cls, data, "run identity")


# =============================================================================
# Workflow scan (job-started hook)
# =============================================================================


class GitHubAppConfig(BaseModel):
    """GitHub App identity used to read workflows and open alert issues.

    Attributes:
        app_id: GitHub App ID (JWT issuer).
        installation_id: Installation of the app on the runner's org/repo.
        private_key_path: PEM private key of the app. Read once, never logged.
        api_url: REST API base URL (GHES: https://host/api/v3).
    """

    model_config = ConfigDict(frozen=True)

    app_id: str = Field(min_length=1, pattern=r"^[A-Za-z0-9]+$")
    installation_id: int = Field(gt=0)
    private_key_path: Path
    api_url: str = GITHUB_API_URL


class ScanConfig(BaseModel):
    """Settings for the workflow provenance scan.

    Attributes:
        app: GitHub App credentials.
        download_dir: Directory that receives downloaded workflow copies.
        alert_labels: Labels applied to the alert issue.
        alert_assignees: Users assigned to the alert issue.
        rules_file: Optional JSON rules file replacing the default rule set.
        max_workers: Concurrent referenced-workflow downloads.
    """

    model_config = ConfigDict(frozen=True)

    app: GitHubAppConfig
    download_dir: Path = DEFAULT_DOWNLOAD_DIR
    alert_labels: list[str] = Field(default_factory=lambda: list(DEFAULT_ALERT_LABELS))
    alert_assignees: list[str] = Field(default_factory=list)
    rules_file: Path | None = None
    max_workers: int = Field(default=DEFAULT_DOWNLOAD_WORKERS, ge=1, le=32)

    @property
    def resolved_download_dir(self) -> Path:
        return self.download_dir.expanduser()

    @classmethod
    def from_settings(cls, settings: Mapping[str, str]) -> "ScanConfig":
        _require(
            settings,
            ("GITHUB_APP_ID", "GITHUB_APP_INSTALLATION_ID", "GITHUB_APP_PRIVATE_KEY_PATH"),
            "GitHub App",
        )
        app: dict[str, Any] = {
            "app_id": settings["GITHUB_APP_ID"],
            "installation_id": settings["GITHUB_APP_INSTALLATION_ID"],
            "private_key_path": settings["GITHUB_APP_PRIVATE_KEY_PATH"],
        }
        if settings.get("GITHUB_API_URL"):
            app["api_url"] = settings["GITHUB_API_URL"].rstrip("/")

        data: dict[str, Any] = {"app": app}
        if settings.get("RUNNER_GATE_DOWNLOAD_DIR"):
            data["download_dir"] = settings["RUNNER_GATE_DOWNLOAD_DIR"]
        if settings.get("RUNNER_GATE_ALERT_LABELS"):
            data["alert_labels"] = _split_list(settings["RUNNER_GATE_ALERT_LABELS"])
        if settings.get("RUNNER_GATE_ALERT_ASSIGNEES"):
            data["alert_assignees"] = _split_list(settings["RUNNER_GATE_ALERT_ASSIGNEES"])
        if settings.get("RUNNER_GATE_RULES_FILE"):
            data["rules_file"] = settings["RUNNER_GATE_RULES_FILE"]
        if settings.get("RUNNER_GATE_MAX_WORKERS"):
            data["max_workers"] = settings["RUNNER_GATE_MAX_WORKERS"]
        return _validate(cls, data, "scan")


# =============================================================================
# Registry broker (job-prepare hook)
# =============================================================================


class RegistryBrokerConfig(BaseModel):
    """Settings for the OIDC -> STS -> Secrets Manager -> registry login chain.

    Attributes:
        role_arn: IAM role assumed with the runner's OIDC token.
        aws_region: Region for STS and Secrets Manager.
        secret_id: Secrets Manager secret holding the registry credentials.
        registry: Registry host to log in to.
        username_key: JSON field of the secret holding the username.
        password_key: JSON field of the secret holding the password.
        docker_config_path: Shared Docker config.json the container runtime reads.
        role_session_name: STS session name (visible in CloudTrail).
    """

    model_config = ConfigDict(frozen=True)

    role_arn: str = Field(pattern=r"^arn:aws[a-zA-Z-]*:iam::\d{12}:role/.+$")
    aws_region: str = Field(pattern=r"^[a-z]{2}(-[a-z]+)+-\d+$")
    secret_id: str = Field(min_length=1)
    registry: str = Field(min_length=1)
    username_key: str = "username"
    password_key: str = "password"
    docker_config_path: Path = DEFAULT_DOCKER_CONFIG_PATH
    role_session_name: str = Field(default=DEFAULT_ROLE_SESSION_NAME, pattern=r"^[\w+=,.@-]{2,64}$")

    @property
    def resolved_docker_config_path(self) -> Path:
        return self.docker_config_path.expanduser()

    @classmethod
    def from_settings(cls, settings: Mapping[str, str]) -> "RegistryBrokerConfig":
        _require(settings, ("ROLE_ARN", "AWS_REGION", "SECRET_ID", "ACR_REGISTRY"), "registry broker")
        data: dict[str, Any] = {
            "role_arn": settings["ROLE_ARN"],
            "aws_region": settings["AWS_REGION"],
            "secret_id": settings["SECRET_ID"],
            "registry": settings["ACR_REGISTRY"],
        }
        optional = {
            "REGISTRY_USERNAME_KEY": "username_key",
            "REGISTRY_PASSWORD_KEY": "password_key",
            "DOCKER_CONFIG_PATH": "docker_config_path",
            "ROLE_SESSION_NAME": "role_session_name",
        }
        for setting, field_name in optional.items():
            if settings.get(setting):
                data[field_name] = settings[setting]
        return _validate(cls, data, "registry broker")


# =============================================================================
# Workflow allowlist
# =============================================================================


class AllowlistConfig(BaseModel):
    """Workflow paths this runner accepts (extension-less, repo-relative).

    Attributes:
        allowed_workflows: e.g. [".github/workflows/copilot-setup-steps"].
    """

    model_config = ConfigDict(frozen=True)

    allowed_workflows: list[str] = Field(min_length=1)

    @classmethod
    def from_settings(cls, settings: Mapping[str, str]) -> "AllowlistConfig":
        _require(settings, ("RUNNER_GATE_ALLOWED_WORKFLOWS",), "workflow allowlist")
        return _validate(
            cls,
            {"allowed_workflows": _split_list(settings["RUNNER_GATE_ALLOWED_WORKFLOWS"])},
            "workflow allowlist",
        )
