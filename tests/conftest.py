"""Shared fixtures for runner-gate tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from runner_gate.config import GitHubAppConfig, RegistryBrokerConfig, RunIdentity, ScanConfig


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA key pair standing in for a GitHub App key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def private_key_file(tmp_path: Path, rsa_private_key: rsa.RSAPrivateKey) -> Path:
    """PEM file holding rsa_private_key."""
    path = tmp_path / "app.pem"
    path.write_bytes(
        rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return path


@pytest.fixture
def app_config(private_key_file: Path) -> GitHubAppConfig:
    return GitHubAppConfig(
        app_id="12345",
        installation_id=67890,
        private_key_path=private_key_file,
        api_url="https://api.github.test",
    )


@pytest.fixture
def scan_config(app_config: GitHubAppConfig, tmp_path: Path) -> ScanConfig:
    return ScanConfig(
        app=app_config,
        download_dir=tmp_path / "workflows",
        alert_labels=["bug", "security"],
        alert_assignees=["octocat"],
    )


@pytest.fixture
def run_identity() -> RunIdentity:
    return RunIdentity(
        repository="octo-org/app",
        run_id=4242,
        sha="a" * 40,
        ref="refs/heads/feature/login",
        workflow_ref="octo-org/app/.github/workflows/ci.yml@refs/heads/feature/login",
    )


@pytest.fixture
def broker_config(tmp_path: Path) -> RegistryBrokerConfig:
    return RegistryBrokerConfig(
        role_arn="arn:aws:iam::123456789012:role/runner-registry",
        aws_region="us-east-1",
        secret_id="runner/registry",
        registry="example.azurecr.io",
        docker_config_path=tmp_path / "shared" / ".docker" / "config.json",
    )

