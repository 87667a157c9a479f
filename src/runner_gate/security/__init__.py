"""Secret hygiene primitives: scoped secrets and signal-safe cleanup."""

from runner_gate.security.cleanup import CleanupRegistry, remove_path
from runner_gate.security.secret import Secret, SecretClearedError

__all__ = [
    "CleanupRegistry",
    "Secret",
    "SecretClearedError",
    "remove_path",
]
