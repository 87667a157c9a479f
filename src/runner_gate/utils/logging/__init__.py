"""Logging utilities for runner-gate."""

from runner_gate.utils.logging.iso_formatter import ISO8601Formatter
from runner_gate.utils.logging.redaction import (
    REDACTED,
    RedactingFilter,
    redact_text,
    register_secret,
    unregister_secret,
)

__all__ = [
    "ISO8601Formatter",
    "REDACTED",
    "RedactingFilter",
    "redact_text",
    "register_secret",
    "unregister_secret",
]
