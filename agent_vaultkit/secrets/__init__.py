"""Vault login flows and credential fetchers."""
from .domains.errors import (
    AuthError,
    ConfigurationError,
    CredentialSourceError,
    DecodeError,
    FetchCancelledError,
    FieldTypeError,
    LoginError,
    MissingFieldError,
    NotFoundError,
    PayloadError,
    SecretReadError,
    StructureError,
    TransportError,
    VaultKitError,
)
from .domains.models import Credentials, Environment, KubernetesEnv, LeaseMetadata, SecretIDEnv
from .workflows.secret_operations import (
    fetch_api_keys_by_approle,
    fetch_by_kubernetes_auth,
    fetch_database_credentials_by_approle,
)

__all__ = [
    "AuthError",
    "ConfigurationError",
    "CredentialSourceError",
    "Credentials",
    "DecodeError",
    "Environment",
    "FetchCancelledError",
    "FieldTypeError",
    "KubernetesEnv",
    "LeaseMetadata",
    "LoginError",
    "MissingFieldError",
    "NotFoundError",
    "PayloadError",
    "SecretIDEnv",
    "SecretReadError",
    "StructureError",
    "TransportError",
    "VaultKitError",
    "fetch_api_keys_by_approle",
    "fetch_by_kubernetes_auth",
    "fetch_database_credentials_by_approle",
]
