"""Tests for CleanupRegistry."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

from runner_gate.security.cleanup import CleanupRegistry, remove_path


class TestRemovePath:
    """Tests for remove_path."""

    def test_removes_directory_tree(self, tmp_path: Path) -> None:
        # Arrange
        directory = tmp_path / "creds"
        (directory / "nested").mkdir(parents=True)
        (directory / "nested" / "config.json").write_text("{}")

        # Act & Assert
        assert remove_path(directory) is True
        assert not directory.exists()

    def test_missing_path_counts_as_removed(self, tmp_path: Path) -> None:
        # Act & Assert
        assert remove_path(tmp_path / "never-existed") is True


class TestCleanupRegistry:
    """Tests for CleanupRegistry."""

    def test_context_exit_removes_registered_paths(self, tmp_path: Path) -> None:
        # Arrange
        directory = tmp_path / "creds"
        directory.mkdir()

        # Act
        with CleanupRegistry() as cleanup:
            cleanup.register(directory)

        # Assert
        assert not directory.exists()
        assert cleanup.paths == []

    def test_exception_still_removes_paths(self, tmp_path: Path) -> None:
        # Arrange
        directory = tmp_path / "creds"
        directory.mkdir()

        # Act
        with pytest.raises(RuntimeError):
            with CleanupRegistry() as cleanup:
                cleanup.register(directory)
                raise RuntimeError("login failed")

        # Assert
        assert not directory.exists()

    def test_unregistered_path_is_kept(self, tmp_path: Path) -> None:
        # Arrange
        directory = tmp_path / "published"
        directory.mkdir()

        # Act
        with CleanupRegistry() as cleanup:
            cleanup.register(directory)
            cleanup.unregister(directory)

        # Assert
        assert directory.exists()

    def test_handlers_restored_on_exit(self) -> None:
        # Arrange
        before = signal.getsignal(signal.SIGTERM)

        # Act
        with CleanupRegistry():
            during = signal.getsignal(signal.SIGTERM)

        # Assert
        assert during != before
        assert signal.getsignal(signal.SIGTERM) == before

    def test_sigterm_removes_paths_and_exits(self, tmp_path: Path) -> None:
        """Given SIGTERM during the run, removes paths and exits with 128+15."""
        # Arrange
        directory = tmp_path / "creds"
        directory.mkdir()
        before = signal.getsignal(signal.SIGTERM)

        # Act
        with pytest.raises(SystemExit) as exc_info:
            with CleanupRegistry() as cleanup:
                cleanup.register(directory)
                os.kill(os.getpid(), signal.SIGTERM)

        # Assert
        assert exc_info.value.code == 128 + signal.SIGTERM
        assert not directory.exists()
        assert signal.getsignal(signal.SIGTERM) == before


# The child holds a lock the handler needs, then signals itself
_SIGNAL_WHILE_LOCKED = textwrap.dedent(
    """
    import os
    import signal
    import sys
    from pathlib import Path

    from runner_gate.security.cleanup import CleanupRegistry
    from runner_gate.utils.logging import redaction

    directory = Path(sys.argv[1])
    with CleanupRegistry() as cleanup:
        cleanup.register(directory)
        lock = redaction._lock if sys.argv[2] == "redaction" else cleanup._lock
        with lock:
            os.kill(os.getpid(), signal.SIGTERM)
    """
)


class TestSignalWhileLocked:
    """Tests for signal delivery while the main thread holds a shared lock."""

    @pytest.mark.parametrize("held_lock", ["redaction", "registry"])
    def test_sigterm_exits_and_removes_paths(self, tmp_path: Path, held_lock: str) -> None:
        """Given SIGTERM while a lock is held, exits 143 with the directory removed."""
        # Arrange
        directory = tmp_path / "creds"
        directory.mkdir()
        (directory / "config.json").write_text("{}")

        # Act
        completed = subprocess.run(
            [sys.executable, "-c", _SIGNAL_WHILE_LOCKED, str(directory), held_lock],
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )

        # Assert
        assert completed.returncode == 128 + signal.SIGTERM, completed.stderr
        assert not directory.exists()
