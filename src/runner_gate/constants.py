"""Application-wide constants for runner-gate.

Constants that define application behavior.
For per-runner settings (env file values), see config.py.
"""

from pathlib import Path

from runner_gate import __version__

__all__ = [
    # Application identity
    "APP_NAME",
    "USER_AGENT",
    # Configuration sources
    "DEFAULT_ENV_FILE",
    "ENV_FILE_VARIABLE",
    "LOG_FILE_VARIABLE",
    # GitHub App authentication
    "GITHUB_API_URL",
    "GITHUB_API_VERSION",
    "GITHUB_HTTP_TIMEOUT_SECONDS",
    "APP_JWT_ALGORITHM",
    "APP_JWT_CLOCK_SKEW_SECONDS",
    "APP_JWT_LIFETIME_SECONDS",
    # Workflow resolution
    "DEFAULT_DOWNLOAD_DIR",
    "DEFAULT_DOWNLOAD_WORKERS",
    "WORKFLOW_DIR_MARKER",
    # Alerting
    "ALERT_TITLE_PREFIX",
    "DEFAULT_ALERT_LABELS",
    "UNKNOWN_REPOSITORY",
    # Registry broker
    "OIDC_AUDIENCE",
    "OIDC_HTTP_TIMEOUT_SECONDS",
    "ROLE_SESSION_DURATION_SECONDS",
    "DEFAULT_ROLE_SESSION_NAME",
    "DEFAULT_DOCKER_CONFIG_PATH",
    "DOCKER_CONFIG_FILENAME",
    "DOCKER_LOGIN_TIMEOUT_SECONDS",
    # Exit codes
    "EXIT_SIGNAL_BASE",
]

# =============================================================================
# Application identity
# =============================================================================

APP_NAME = "runner-gate"
USER_AGENT = f"{APP_NAME}/{__version__}"

# =============================================================================
# Configuration sources
# =============================================================================

# Protected env file written by the runner image build
DEFAULT_ENV_FILE = Path("/opt/runner.env")
ENV_FILE_VARIABLE = "RUNNER_GATE_ENV_FILE"

# Optional JSONL log file for WARNING+ events
LOG_FILE_VARIABLE = "RUNNER_GATE_LOG_FILE"

# =============================================================================
# GitHub App authentication
# =============================================================================

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_HTTP_TIMEOUT_SECONDS = 10.0

APP_JWT_ALGORITHM = "RS256"
# iat is backdated to tolerate clock drift between runner and GitHub
APP_JWT_CLOCK_SKEW_SECONDS = 60
# GitHub rejects app JWTs valid for more than 10 minutes
APP_JWT_LIFETIME_SECONDS = 600

# =============================================================================
# Workflow resolution
# =============================================================================

DEFAULT_DOWNLOAD_DIR = Path("~/.cache/runner-gate/workflows")
DEFAULT_DOWNLOAD_WORKERS = 4
WORKFLOW_DIR_MARKER = "/.github/"

# =============================================================================
# Alerting
# =============================================================================

ALERT_TITLE_PREFIX = "Security Alert"
DEFAULT_ALERT_LABELS: tuple[str, ...] = ("bug",)
UNKNOWN_REPOSITORY = "unknown"

# =============================================================================
# Registry broker
# =============================================================================

OIDC_AUDIENCE = "sts.amazonaws.com"
OIDC_HTTP_TIMEOUT_SECONDS = 10.0
ROLE_SESSION_DURATION_SECONDS = 900
DEFAULT_ROLE_SESSION_NAME = "GitHubActions-Registry-Hook"
DEFAULT_DOCKER_CONFIG_PATH = Path("~/.docker/config.json")
DOCKER_CONFIG_FILENAME = "config.json"
DOCKER_LOGIN_TIMEOUT_SECONDS = 60

# =============================================================================
# Exit codes
# =============================================================================

# Killed by signal N exits with 128 + N (shell convention)
EXIT_SIGNAL_BASE = 128
