"""Unconditional cleanup of temporary credential paths.

The broker writes registry credentials into a temporary directory. That
directory must disappear on every exit path: normal return, exception,
SystemExit, interpreter exit and termination signals sent by the job
scheduler (timeout or cancel). CleanupRegistry covers the last two, which a
plain try/finally does not.

Usage:
    with CleanupRegistry() as cleanup:
        tmp = Path(tempfile.mkdtemp())
        cleanup.register(tmp)
        ...
    # tmp is gone, handlers restored
"""

from __future__ import annotations

__all__ = ["CleanupRegistry", "remove_path"]

import atexit
import shutil
import signal
import threading
from pathlib import Path
from types import FrameType, TracebackType
from typing import Any

from runner_gate.constants import EXIT_SIGNAL_BASE
from runner_gate.telemetry.system_logger import get_system_logger

_DEFAULT_SIGNALS: tuple[signal.Signals, ...] = tuple(
    sig for sig in (signal.SIGTERM, signal.SIGINT, getattr(signal, "SIGHUP", None)) if sig is not None
)


def remove_path(path: Path) -> bool:
    """Remove a file or directory tree if present.

    Returns:
        True if nothing remains at path afterwards.
    """
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except OSError as e:
        get_system_logger().error(
            {
                "event": "cleanup_failed",
                "message": f"Failed to remove temporary path {path}: {e}",
                "path": str(path),
                "error_type": type(e).__name__,
            }
        )
    return not path.exists()


class CleanupRegistry:
    """Removes registered paths on exit, exception or termination signal.

    Signal handlers can only be installed from the main thread; elsewhere the
    registry falls back to atexit plus the context manager exit.
    """

    def __init__(self, signals: tuple[signal.Signals, ...] = _DEFAULT_SIGNALS) -> None:
        self._signals = signals
        self._paths: list[Path] = []
        # Reentrant: the signal handler runs on the main thread and may interrupt register()
        self._lock = threading.RLock()
        self._previous: dict[signal.Signals, Any] = {}
        self._installed = False

    def register(self, path: Path) -> None:
        with self._lock:
            if path not in self._paths:
                self._paths.append(path)

    def unregister(self, path: Path) -> None:
        with self._lock:
            if path in self._paths:
                self._paths.remove(path)

    @property
    def paths(self) -> list[Path]:
        with self._lock:
            return list(self._paths)

    def run(self) -> bool:
        """Remove every registered path.

        Returns:
            True if all paths were removed.
        """
        with self._lock:
            paths = list(self._paths)
            self._paths.clear()
        # All paths are attempted even if one fails
        results = [remove_path(path) for path in paths]
        return all(results)

    def install(self) -> None:
        """Install signal handlers and the atexit hook."""
        if self._installed:
            return
        atexit.register(self.run)
        if threading.current_thread() is threading.main_thread():
            for sig in self._signals:
                self._previous[sig] = signal.getsignal(sig)
                signal.signal(sig, self._handle_signal)
        self._installed = True

    def uninstall(self) -> None:
        """Restore previous signal handlers and drop the atexit hook."""
        if not self._installed:
            return
        atexit.unregister(self.run)
        for sig, previous in self._previous.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()
        self._installed = False

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        removed = self.run()
        self.uninstall()
        get_system_logger().warning(
            {
                "event": "termination_signal_received",
                "message": f"Received signal {signum}, exiting after cleanup",
                "signal": signum,
                "cleanup_complete": removed,
            }
        )
        raise SystemExit(EXIT_SIGNAL_BASE + signum)

    def __enter__(self) -> "CleanupRegistry":
        self.install()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self.run()
        finally:
            self.uninstall()
