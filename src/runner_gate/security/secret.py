"""Scoped holder for in-flight secrets.

Tokens, cloud credentials and registry passwords live in a Secret for as
short a time as possible and are cleared on every exit path:

    with Secret(token_value, label="oidc_token") as token:
        exchange(token.reveal())
    # token is cleared here, even if exchange() raised

Python strings are immutable, so clear() cannot scrub copies that callers
obtained through reveal(). What it guarantees is that the Secret itself
drops its bytes (overwritten with zeros), refuses further reveal() calls and
is removed from the log redaction registry.
"""

from __future__ import annotations

__all__ = ["Secret", "SecretClearedError"]

from types import TracebackType

from runner_gate.utils.logging.redaction import register_secret, unregister_secret


class SecretClearedError(RuntimeError):
    """reveal() was called on a Secret that has already been cleared."""


class Secret:
    """A secret value that is masked in logs and zeroed on clear().

    Attributes:
        label: Non-sensitive name used in repr and error messages.
    """

    __slots__ = ("_buffer", "_registered", "label")

    def __init__(self, value: str, *, label: str = "secret") -> None:
        self.label = label
        self._buffer = bytearray(value.encode("utf-8"))
        self._registered = value
        register_secret(value)

    def reveal(self) -> str:
        """Return the plaintext value.

        Raises:
            SecretClearedError: If the secret has been cleared.
        """
        if self._registered is None:
            raise SecretClearedError(f"{self.label} has already been cleared")
        return self._buffer.decode("utf-8")

    def clear(self) -> None:
        """Zero the stored bytes and forget the value. Safe to call twice."""
        if self._registered is not None:
            unregister_secret(self._registered)
            self._registered = None
        for index in range(len(self._buffer)):
            self._buffer[index] = 0
        self._buffer = bytearray()

    @property
    def cleared(self) -> bool:
        return self._registered is None

    def __len__(self) -> int:
        return len(self._buffer)

    def __enter__(self) -> "Secret":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.clear()

    def __repr__(self) -> str:
        state = "cleared" if self.cleared else "***"
        return f"Secret(label={self.label!r}, value={state})"

    __str__ = __repr__

    def __reduce__(self) -> None:  # type: ignore[override]
        raise TypeError("Secret objects cannot be pickled")
