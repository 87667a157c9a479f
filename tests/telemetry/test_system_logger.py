"""Tests for the system logger."""

from __future__ import annotations

import json
import logging
import stat
from collections.abc import Iterator
from pathlib import Path

import pytest

from runner_gate.security.secret import Secret
from runner_gate.telemetry import system_logger
from runner_gate.telemetry.system_logger import ConsoleFormatter, configure_system_logger_file, get_system_logger


@pytest.fixture
def file_logging(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Enable the JSONL handler for one test, then detach it."""
    log_path = tmp_path / "logs" / "runner-gate.jsonl"
    monkeypatch.setattr(system_logger, "_file_handler_configured", False)
    logger = get_system_logger()
    before = list(logger.handlers)
    configure_system_logger_file(log_path)
    yield log_path
    for handler in logger.handlers:
        if handler not in before:
            handler.close()
            logger.removeHandler(handler)


class TestConsoleFormatter:
    def test_dict_message_uses_message_field(self) -> None:
        # Arrange
        record = logging.LogRecord(
            "t", logging.WARNING, __file__, 1, {"event": "x", "message": "download failed"}, None, None
        )

        # Act & Assert
        assert ConsoleFormatter().format(record) == "WARNING: download failed"


class TestSystemLoggerFile:
    """Tests for the JSONL file handler."""

    def test_only_warnings_reach_file(self, file_logging: Path) -> None:
        # Act
        get_system_logger().info({"event": "routine", "message": "routine"})
        get_system_logger().warning({"event": "download_failed", "message": "404 for x.yml"})

        # Assert
        entries = [json.loads(line) for line in file_logging.read_text().splitlines()]
        assert [entry["event"] for entry in entries] == ["download_failed"]
        assert entries[0]["level"] == "WARNING"
        assert entries[0]["time"].endswith("Z")

    def test_file_is_owner_only(self, file_logging: Path) -> None:
        # Act & Assert
        assert stat.S_IMODE(file_logging.stat().st_mode) == 0o600

    def test_registered_secret_never_written(self, file_logging: Path) -> None:
        """Given a live Secret embedded in a log event, the file holds only the placeholder."""
        # Arrange
        secret = Secret("leaked-token-value-123")

        # Act
        get_system_logger().error({"event": "oops", "message": "token=leaked-token-value-123"})
        secret.clear()

        # Assert
        content = file_logging.read_text()
        assert "leaked-token-value-123" not in content
        assert "token=***" in content
