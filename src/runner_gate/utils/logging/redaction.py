"""Secret redaction for log records.

Every live Secret registers its value here. RedactingFilter replaces any
registered value (and anything shaped like a bearer credential) with a
placeholder before a handler formats the record, so tokens and passwords
cannot reach stderr or the JSONL file even if a message embeds them by
mistake.
"""

from __future__ import annotations

__all__ = [
    "REDACTED",
    "RedactingFilter",
    "redact_text",
    "register_secret",
    "unregister_secret",
]

import logging
import re
import threading
from typing import Any

REDACTED = "***"

# Shorter values are not registered: masking them would shred ordinary text
_MIN_SECRET_LENGTH = 4

# Credential shapes that should never appear even when not registered
_CREDENTIAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?i)(authorization:\s*(?:bearer|token|basic)\s+)\S+"),
    re.compile(r"(?i)\b(bearer\s+)[A-Za-z0-9._~+/=-]{8,}"),
    # GitHub installation / user tokens
    re.compile(r"()\bgh[opsu]_[A-Za-z0-9]{20,}"),
    # Compact JWTs (three base64url segments)
    re.compile(r"()\beyJ[A-Za-z0-9_-]{5,}\.[A-Za-z0-9_-]{5,}\.[A-Za-z0-9_-]*"),
)

# Reentrant: redact_text may run in a signal handler that interrupted register_secret()
_lock = threading.RLock()
_registered: dict[str, int] = {}


def register_secret(value: str) -> None:
    """Mark a value as secret so log output masks it."""
    if len(value) < _MIN_SECRET_LENGTH:
        return
    with _lock:
        _registered[value] = _registered.get(value, 0) + 1


def unregister_secret(value: str) -> None:
    """Drop a value registered with register_secret()."""
    with _lock:
        count = _registered.get(value)
        if count is None:
            return
        if count <= 1:
            del _registered[value]
        else:
            _registered[value] = count - 1


def redact_text(text: str) -> str:
    """Mask registered secrets and credential-shaped substrings in text.

    Args:
        text: Arbitrary text (log message, subprocess stderr, error string).

    Returns:
        Text with secrets replaced by REDACTED.
    """
    with _lock:
        # Longest first so a secret containing another is masked whole
        values = sorted(_registered, key=len, reverse=True)
    for value in values:
        if value in text:
            text = text.replace(value, REDACTED)
    for pattern in _CREDENTIAL_PATTERNS:
        text = pattern.sub(lambda m: f"{m.group(1)}{REDACTED}", text)
    return text


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return {key: _redact_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(item) for item in value)
    return value


class RedactingFilter(logging.Filter):
    """Logging filter that masks secrets in dict and string messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, dict):
            record.msg = _redact_value(record.msg)
        else:
            record.msg = redact_text(record.getMessage())
            record.args = None
        return True
