"""Shared plumbing for hook commands.

Every hook command follows the same shape: load settings, run one
operation, map CriticalSecurityFailure to its exit code. run_hook()
centralizes the failure handling so each command body stays small.
"""

from __future__ import annotations

__all__ = ["env_file_option", "load_hook_settings", "run_hook"]

import sys
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn, TypeVar

import click

from runner_gate.config import load_settings, resolve_env_file
from runner_gate.constants import LOG_FILE_VARIABLE
from runner_gate.exceptions import CriticalSecurityFailure
from runner_gate.telemetry.system_logger import configure_system_logger_file, get_system_logger

from ..styling import style_error

T = TypeVar("T")

env_file_option = click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Runner env file (default: $RUNNER_GATE_ENV_FILE or /opt/runner.env)",
)


def load_hook_settings(env_file: Path | None) -> dict[str, str]:
    """Resolve and load the env file, then enable the JSONL log if configured.

    Raises:
        ConfigurationError: If an explicitly requested env file is missing.
    """
    path, required = resolve_env_file(env_file)
    settings = load_settings(path, required=required)
    log_file = settings.get(LOG_FILE_VARIABLE)
    if log_file:
        try:
            configure_system_logger_file(Path(log_file))
        except OSError as e:
            get_system_logger().warning(
                {
                    "event": "log_file_unavailable",
                    "message": f"Could not open log file {log_file}: {e.strerror}",
                    "path": log_file,
                }
            )
    return settings


def _fail(hook: str, error: CriticalSecurityFailure) -> NoReturn:
    get_system_logger().error(
        {
            "event": "hook_failed",
            "message": f"{hook} aborted: {error}",
            "hook": hook,
            "failure_type": error.failure_type,
            "exit_code": error.exit_code,
        }
    )
    click.echo(style_error(str(error)), err=True)
    sys.exit(error.exit_code)


def run_hook(hook: str, operation: Callable[[], T]) -> T:
    """Run operation, exiting with the failure's code on CriticalSecurityFailure.

    Unexpected exceptions are logged and exit with status 1; a hook that
    crashed must still stop the job.
    """
    try:
        return operation()
    except CriticalSecurityFailure as e:
        _fail(hook, e)
    except Exception as e:
        get_system_logger().critical(
            {
                "event": "hook_crashed",
                "message": f"{hook} crashed: {type(e).__name__}: {e}",
                "hook": hook,
                "error_type": type(e).__name__,
            }
        )
        click.echo(style_error(f"{hook} failed unexpectedly: {type(e).__name__}"), err=True)
        sys.exit(1)
