"""Tests for registry login and Docker config publishing."""

from __future__ import annotations

import base64
import json
import stat
import subprocess
from pathlib import Path
from typing import Any

import pytest

from runner_gate.exceptions import CredentialStoreError
from runner_gate.registry.aws import RegistrySecret
from runner_gate.registry.installer import RegistryCredentialInstaller
from runner_gate.security.cleanup import CleanupRegistry
from runner_gate.security.secret import Secret

REGISTRY = "example.azurecr.io"
PASSWORD = "registry-pass-123"


class FakeDocker:
    """subprocess.run stand-in that behaves like `docker --config DIR login`."""

    def __init__(self, returncode: int = 0, stderr: str = "", raises: BaseException | None = None) -> None:
        self.returncode = returncode
        self.stderr = stderr
        self.raises = raises
        self.calls: list[tuple[list[str], dict[str, Any]]] = []
        self.config_dirs: list[Path] = []

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, kwargs))
        config_dir = Path(command[command.index("--config") + 1])
        self.config_dirs.append(config_dir)
        if self.raises is not None:
            raise self.raises
        if self.returncode == 0:
            username = command[command.index("--username") + 1]
            auth = base64.b64encode(f"{username}:{kwargs['input']}".encode()).decode()
            (config_dir / "config.json").write_text(json.dumps({"auths": {command[4]: {"auth": auth}}}))
        return subprocess.CompletedProcess(command, self.returncode, stdout="", stderr=self.stderr)


def _secret() -> RegistrySecret:
    return RegistrySecret(username=Secret("robot"), password=Secret(PASSWORD))


@pytest.fixture
def target(tmp_path: Path) -> Path:
    return tmp_path / "shared" / ".docker" / "config.json"


class TestRegistryCredentialInstaller:
    """Tests for RegistryCredentialInstaller.install."""

    def test_publishes_config_with_password_only_in_auth(self, target: Path) -> None:
        """Given a successful login, config.json holds the password only base64-encoded in auth."""
        # Arrange
        docker = FakeDocker()
        installer = RegistryCredentialInstaller(REGISTRY, target, CleanupRegistry(), docker_bin="docker", runner=docker)

        # Act
        published = installer.install(_secret())

        # Assert
        assert published == target
        raw = target.read_text()
        assert PASSWORD not in raw
        auth = json.loads(raw)["auths"][REGISTRY]["auth"]
        assert base64.b64decode(auth).decode() == f"robot:{PASSWORD}"

    def test_published_file_is_owner_only(self, target: Path) -> None:
        # Arrange
        installer = RegistryCredentialInstaller(
            REGISTRY, target, CleanupRegistry(), docker_bin="docker", runner=FakeDocker()
        )

        # Act
        installer.install(_secret())

        # Assert
        assert stat.S_IMODE(target.stat().st_mode) == 0o600
        assert stat.S_IMODE(target.parent.stat().st_mode) == 0o700

    def test_password_goes_through_stdin(self, target: Path) -> None:
        """Given a login, the password is passed on stdin, never on the command line."""
        # Arrange
        docker = FakeDocker()
        installer = RegistryCredentialInstaller(REGISTRY, target, CleanupRegistry(), docker_bin="docker", runner=docker)

        # Act
        installer.install(_secret())

        # Assert
        command, kwargs = docker.calls[0]
        assert PASSWORD not in command
        assert "--password-stdin" in command
        assert kwargs["input"] == PASSWORD
        assert command[:2] == ["docker", "--config"]
        assert command[3:5] == ["login", REGISTRY]

    def test_temp_dir_removed_after_success(self, target: Path) -> None:
        # Arrange
        docker = FakeDocker()
        cleanup = CleanupRegistry()
        installer = RegistryCredentialInstaller(REGISTRY, target, cleanup, docker_bin="docker", runner=docker)

        # Act
        installer.install(_secret())

        # Assert
        assert not docker.config_dirs[0].exists()
        assert cleanup.paths == []

    def test_secret_cleared_after_install(self, target: Path) -> None:
        # Arrange
        secret = _secret()
        installer = RegistryCredentialInstaller(
            REGISTRY, target, CleanupRegistry(), docker_bin="docker", runner=FakeDocker()
        )

        # Act
        installer.install(secret)

        # Assert
        assert secret.username.cleared
        assert secret.password.cleared

    def test_failed_login_leaves_no_temp_dir(self, target: Path) -> None:
        """Given docker login exits non-zero, raises and removes the temp dir."""
        # Arrange
        docker = FakeDocker(returncode=1, stderr=f"Error response: unauthorized for robot:{PASSWORD}")
        secret = _secret()
        installer = RegistryCredentialInstaller(REGISTRY, target, CleanupRegistry(), docker_bin="docker", runner=docker)

        # Act & Assert
        with pytest.raises(CredentialStoreError, match="exit 1") as exc_info:
            installer.install(secret)
        assert PASSWORD not in str(exc_info.value)
        assert not docker.config_dirs[0].exists()
        assert not target.exists()
        assert secret.password.cleared

    def test_timeout_raises(self, target: Path) -> None:
        # Arrange
        docker = FakeDocker(raises=subprocess.TimeoutExpired(cmd="docker login", timeout=60))
        installer = RegistryCredentialInstaller(REGISTRY, target, CleanupRegistry(), docker_bin="docker", runner=docker)

        # Act & Assert
        with pytest.raises(CredentialStoreError, match="timed out"):
            installer.install(_secret())
        assert not docker.config_dirs[0].exists()

    def test_missing_docker_binary_raises(self, target: Path) -> None:
        # Arrange
        docker = FakeDocker(raises=FileNotFoundError(2, "No such file or directory"))
        installer = RegistryCredentialInstaller(
            REGISTRY, target, CleanupRegistry(), docker_bin="/nonexistent/docker", runner=docker
        )

        # Act & Assert
        with pytest.raises(CredentialStoreError, match="Could not run docker login"):
            installer.install(_secret())

    def test_login_without_config_file_raises(self, target: Path) -> None:
        """Given a zero exit but no config.json, raises instead of publishing nothing."""
        # Arrange
        def silent_docker(command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
            return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

        installer = RegistryCredentialInstaller(
            REGISTRY, target, CleanupRegistry(), docker_bin="docker", runner=silent_docker
        )

        # Act & Assert
        with pytest.raises(CredentialStoreError, match="did not produce"):
            installer.install(_secret())
        assert not target.exists()

    def test_existing_config_replaced(self, target: Path) -> None:
        # Arrange
        target.parent.mkdir(parents=True)
        target.write_text('{"auths": {"old.example": {"auth": "b2xk"}}}')
        installer = RegistryCredentialInstaller(
            REGISTRY, target, CleanupRegistry(), docker_bin="docker", runner=FakeDocker()
        )

        # Act
        installer.install(_secret())

        # Assert
        assert list(json.loads(target.read_text())["auths"]) == [REGISTRY]
        assert [p.name for p in target.parent.iterdir()] == ["config.json"]

    def test_work_dir_registered_before_creation(self, target: Path) -> None:
        """Given a signal could land right after mkdir, the directory is already registered."""
        # Arrange
        seen: list[tuple[Path, bool]] = []

        class RecordingCleanup(CleanupRegistry):
            def register(self, path: Path) -> None:
                seen.append((path, path.exists()))
                super().register(path)

        docker = FakeDocker()
        installer = RegistryCredentialInstaller(
            REGISTRY, target, RecordingCleanup(), docker_bin="docker", runner=docker
        )

        # Act
        installer.install(_secret())

        # Assert
        assert seen == [(docker.config_dirs[0], False)]

    def test_preexisting_work_dir_is_refused_and_kept(
        self, target: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Given something already sits at the work dir path, raises without touching it."""
        # Arrange
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr("runner_gate.registry.installer.tempfile.gettempdir", lambda: str(scratch))
        monkeypatch.setattr("runner_gate.registry.installer.secrets.token_hex", lambda n: "fixed")
        squatter = scratch / "runner-gate-docker-fixed"
        squatter.mkdir()
        (squatter / "keep.txt").write_text("not ours")
        docker = FakeDocker()
        cleanup = CleanupRegistry()
        secret = _secret()
        installer = RegistryCredentialInstaller(REGISTRY, target, cleanup, docker_bin="docker", runner=docker)

        # Act & Assert
        with pytest.raises(CredentialStoreError, match="Could not create temporary Docker config directory"):
            installer.install(secret)
        assert (squatter / "keep.txt").read_text() == "not ours"
        assert docker.calls == []
        assert cleanup.paths == []
        assert secret.password.cleared
