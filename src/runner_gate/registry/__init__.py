"""Short-lived container registry credentials for the job-prepare hook."""

from runner_gate.registry.aws import (
    CloudCredential,
    RegistrySecret,
    assume_role_with_web_identity,
    fetch_registry_secret,
)
from runner_gate.registry.broker import SCRUBBED_ENV_VARIABLES, run_registry_broker
from runner_gate.registry.installer import RegistryCredentialInstaller
from runner_gate.registry.oidc import OIDCRequestContext, request_federated_token

__all__ = [
    "SCRUBBED_ENV_VARIABLES",
    "CloudCredential",
    "OIDCRequestContext",
    "RegistryCredentialInstaller",
    "RegistrySecret",
    "assume_role_with_web_identity",
    "fetch_registry_secret",
    "request_federated_token",
    "run_registry_broker",
]
