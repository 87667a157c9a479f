"""Tests for file helper utilities."""

from __future__ import annotations

import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from runner_gate.utils.file_helpers import atomic_write_bytes


class TestAtomicWriteBytes:
    """Tests for atomic_write_bytes."""

    def test_creates_parent_and_file_owner_only(self, tmp_path: Path) -> None:
        # Arrange
        target = tmp_path / "new" / "config.json"

        # Act
        atomic_write_bytes(target, b'{"auths": {}}')

        # Assert
        assert target.read_bytes() == b'{"auths": {}}'
        assert stat.S_IMODE(target.stat().st_mode) == 0o600
        assert stat.S_IMODE(target.parent.stat().st_mode) == 0o700

    def test_replaces_existing_file(self, tmp_path: Path) -> None:
        # Arrange
        target = tmp_path / "config.json"
        target.write_bytes(b"old")
        target.chmod(0o644)

        # Act
        atomic_write_bytes(target, b"new")

        # Assert
        assert target.read_bytes() == b"new"
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_failed_rename_keeps_old_file_and_no_temp(self, tmp_path: Path) -> None:
        """Given os.replace fails, the old content survives and the temp file is removed."""
        # Arrange
        target = tmp_path / "config.json"
        target.write_bytes(b"old")

        # Act
        with patch("runner_gate.utils.file_helpers.os.replace", side_effect=OSError(18, "cross-device")):
            with pytest.raises(OSError):
                atomic_write_bytes(target, b"new")

        # Assert
        assert target.read_bytes() == b"old"
        assert [p.name for p in tmp_path.iterdir()] == ["config.json"]
