"""Shared file utilities for runner-gate.

Provides:
- set_secure_permissions: Owner-only file/directory permissions
- require_file_exists: Consistent missing-file errors
- load_validated_json: JSON + Pydantic validation with readable errors
- atomic_write_bytes: Write-then-rename publishing with owner-only mode
"""

from __future__ import annotations

__all__ = [
    "atomic_write_bytes",
    "load_validated_json",
    "require_file_exists",
    "set_secure_permissions",
]

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)

_DIR_PERMISSIONS = 0o700  # Owner rwx only
_FILE_PERMISSIONS = 0o600  # Owner rw only


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Set secure permissions on file or directory.

    Sets permissions to restrict access to owner only:
    - Directory: 0o700 (rwx------)
    - File: 0o600 (rw-------)

    Does nothing on Windows. Silently ignores permission errors
    (some systems don't allow permission changes).

    Args:
        path: Path to file or directory.
        is_directory: If True, use directory permissions (0o700).
    """
    if sys.platform == "win32":
        return

    try:
        mode = _DIR_PERMISSIONS if is_directory else _FILE_PERMISSIONS
        path.chmod(mode)
    except OSError:
        pass  # Permission changes might fail on some systems


def require_file_exists(file_path: Path, file_type: str = "file") -> None:
    """Raise FileNotFoundError with a consistent message if file doesn't exist.

    Args:
        file_path: Path to check.
        file_type: Description for error message (e.g., "private key", "rules").

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    if file_path.is_file():
        return
    raise FileNotFoundError(f"{file_type.capitalize()} file not found at {file_path}.")


def load_validated_json(file_path: Path, model_class: type[T], file_type: str = "file") -> T:
    """Load JSON file and validate against Pydantic model.

    Args:
        file_path: Path to JSON file.
        model_class: Pydantic model class to validate against.
        file_type: Description for error messages (e.g., "rules").

    Returns:
        Validated Pydantic model instance.

    Raises:
        ValueError: If the file is unreadable, not JSON, or fails validation.
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_type} file {file_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read {file_type} file {file_path}: {e}") from e

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ValueError(f"Invalid {file_type} file {file_path}:\n" + "\n".join(errors)) from e


def atomic_write_bytes(target: Path, data: bytes) -> None:
    """Publish data at target atomically with owner-only permissions.

    The content is written to a temporary file in the target's directory
    (created 0o700 if missing), chmod'ed to 0o600 before any data lands,
    fsync'ed, then renamed over target. Readers see either the old file or
    the complete new one.

    Args:
        target: Final path.
        data: File content.

    Raises:
        OSError: If the directory cannot be created or the write fails.
    """
    parent = target.parent
    if not parent.exists():
        parent.mkdir(parents=True, exist_ok=True)
        set_secure_permissions(parent, is_directory=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), _FILE_PERMISSIONS)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
