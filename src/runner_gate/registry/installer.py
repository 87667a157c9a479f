"""Registry login into a private Docker config, then atomic publish.

The docker CLI writes its auth entry into a throwaway --config directory
(created 0o700, registered for cleanup before it exists). Only after a
successful login is config.json copied over the shared config path with
write-then-rename, so the container runtime never reads a half-written file.
The throwaway directory is removed on every exit path, and the
CleanupRegistry covers termination signals.
"""

from __future__ import annotations

__all__ = ["RegistryCredentialInstaller"]

import secrets
import shutil
import subprocess
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from runner_gate.constants import DOCKER_CONFIG_FILENAME, DOCKER_LOGIN_TIMEOUT_SECONDS
from runner_gate.exceptions import CredentialStoreError
from runner_gate.registry.aws import RegistrySecret
from runner_gate.security.cleanup import CleanupRegistry, remove_path
from runner_gate.telemetry.system_logger import get_system_logger
from runner_gate.utils.file_helpers import atomic_write_bytes
from runner_gate.utils.logging.redaction import redact_text

_WORK_DIR_PREFIX = "runner-gate-docker-"


class RegistryCredentialInstaller:
    """Logs in to one registry and publishes the resulting Docker config.

    Attributes:
        registry: Registry host.
        target_path: Shared config.json to replace.
    """

    def __init__(
        self,
        registry: str,
        target_path: Path,
        cleanup: CleanupRegistry,
        docker_bin: str | None = None,
        runner: Callable[..., subprocess.CompletedProcess[Any]] = subprocess.run,
    ) -> None:
        self.registry = registry
        self.target_path = target_path
        self._cleanup = cleanup
        self._docker_bin = docker_bin
        self._runner = runner

    def _docker(self) -> str:
        docker = self._docker_bin or shutil.which("docker")
        if not docker:
            raise CredentialStoreError("docker CLI not found on PATH")
        return docker

    def install(self, secret: RegistrySecret) -> Path:
        """Log in and publish config.json at target_path.

        The registry secret is cleared before this returns or raises.

        Returns:
            The published path.

        Raises:
            CredentialStoreError: If docker is missing, the login fails or
                times out, or the config cannot be published.
        """
        logger = get_system_logger()
        try:
            docker = self._docker()
        except CredentialStoreError:
            secret.clear()
            raise

        work_dir = Path(tempfile.gettempdir()) / f"{_WORK_DIR_PREFIX}{secrets.token_hex(8)}"
        # Registered before it exists; remove_path tolerates a missing path
        self._cleanup.register(work_dir)
        created = False
        try:
            with secret:
                try:
                    work_dir.mkdir(mode=0o700)
                except OSError as e:
                    # Never remove a path someone else put there
                    self._cleanup.unregister(work_dir)
                    raise CredentialStoreError(f"Could not create temporary Docker config directory: {e}") from e
                created = True
                self._login(docker, work_dir, secret)

            produced = work_dir / DOCKER_CONFIG_FILENAME
            try:
                content = produced.read_bytes()
            except OSError as e:
                raise CredentialStoreError(f"docker login did not produce {produced.name}: {e.strerror}") from e

            try:
                atomic_write_bytes(self.target_path, content)
            except OSError as e:
                raise CredentialStoreError(f"Failed to publish Docker config to {self.target_path}: {e}") from e
            finally:
                del content
        finally:
            if created:
                remove_path(work_dir)
            self._cleanup.unregister(work_dir)

        logger.info(
            {
                "event": "registry_credentials_installed",
                "message": f"Registry credentials for {self.registry} published to {self.target_path}",
                "registry": self.registry,
                "path": str(self.target_path),
            }
        )
        return self.target_path

    def _login(self, docker: str, work_dir: Path, secret: RegistrySecret) -> None:
        command = [
            docker,
            "--config",
            str(work_dir),
            "login",
            self.registry,
            "--username",
            secret.username.reveal(),
            "--password-stdin",
        ]
        try:
            result = self._runner(
                command,
                input=secret.password.reveal(),
                capture_output=True,
                text=True,
                timeout=DOCKER_LOGIN_TIMEOUT_SECONDS,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise CredentialStoreError(
                f"docker login to {self.registry} timed out after {DOCKER_LOGIN_TIMEOUT_SECONDS}s"
            ) from None
        except OSError as e:
            raise CredentialStoreError(f"Could not run docker login: {e.strerror}") from e

        if result.returncode != 0:
            stderr = redact_text((result.stderr or "").strip())
            get_system_logger().error(
                {
                    "event": "registry_login_failed",
                    "message": f"docker login to {self.registry} exited with status {result.returncode}",
                    "registry": self.registry,
                    "returncode": result.returncode,
                    "stderr": stderr,
                }
            )
            raise CredentialStoreError(f"docker login to {self.registry} failed (exit {result.returncode})")
