"""Domain models for Vault credential acquisition."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

DEFAULT_VAULT_ADDRESS = "localhost:8200"
DEFAULT_JWT_TOKEN_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/token"
DEFAULT_DATABASE_CREDS_PATH = "database/creds/dev-readonly"
DEFAULT_DATABASE_CREDS_FIELDS = "username,password"
DEFAULT_SECRET_ID_FILE = "/tmp/secret"
DEFAULT_API_KEY_PATH = "kv-v2/data/api-key"
DEFAULT_API_KEY_FIELD = "api-key-field"


@dataclass
class KubernetesEnv:
    """Service-account token location and the secret it unlocks."""
    jwt_token_file: str = DEFAULT_JWT_TOKEN_FILE
    database_creds_path: str = DEFAULT_DATABASE_CREDS_PATH
    database_creds_fields: str = DEFAULT_DATABASE_CREDS_FIELDS
    mount_point: str = "kubernetes"


@dataclass
class SecretIDEnv:
    """AppRole secret id location and the secrets it unlocks."""
    secret_id_file: str = DEFAULT_SECRET_ID_FILE
    secret_id_wrapped: bool = True
    database_creds_path: str = DEFAULT_DATABASE_CREDS_PATH
    api_key_path: str = DEFAULT_API_KEY_PATH
    api_key_field: str = DEFAULT_API_KEY_FIELD
    mount_point: str = "approle"


@dataclass
class Environment:
    """Vault address, login role and secret locations for every flow."""
    vault_address: str = DEFAULT_VAULT_ADDRESS
    approle_role_id: str = ""
    timeout: int = 30
    verify: bool = True
    kubernetes: KubernetesEnv = field(default_factory=KubernetesEnv)
    secret_id: SecretIDEnv = field(default_factory=SecretIDEnv)


@dataclass(frozen=True)
class VaultParameters:
    """Connection parameters consumed by a single auth flow invocation."""
    address: str
    role_id: str
    timeout: int = 30
    verify: bool = True

    # exactly one of these is set, depending on the flow
    jwt_token_file: Optional[str] = None
    secret_id_file: Optional[str] = None
    secret_id_wrapped: bool = True
    mount_point: str = ""

    database_creds_path: str = ""
    database_creds_fields: str = ""
    api_key_path: str = ""
    api_key_fields: str = ""

    @classmethod
    def for_kubernetes(cls, env: Environment) -> "VaultParameters":
        return cls(
            address=env.vault_address,
            role_id=env.approle_role_id,
            timeout=env.timeout,
            verify=env.verify,
            jwt_token_file=env.kubernetes.jwt_token_file,
            mount_point=env.kubernetes.mount_point,
            database_creds_path=env.kubernetes.database_creds_path,
            database_creds_fields=env.kubernetes.database_creds_fields,
        )

    @classmethod
    def for_approle(cls, env: Environment) -> "VaultParameters":
        return cls(
            address=env.vault_address,
            role_id=env.approle_role_id,
            timeout=env.timeout,
            verify=env.verify,
            secret_id_file=env.secret_id.secret_id_file,
            secret_id_wrapped=env.secret_id.secret_id_wrapped,
            mount_point=env.secret_id.mount_point,
            database_creds_path=env.secret_id.database_creds_path,
            api_key_path=env.secret_id.api_key_path,
            api_key_fields=env.secret_id.api_key_field,
        )


@dataclass(frozen=True)
class Credentials:
    """Database credentials decoded from a secret payload."""
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class LeaseMetadata:
    """Lease attached to dynamically generated credentials."""
    lease_id: str = ""
    lease_duration: int = 0
    renewable: bool = False

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> "LeaseMetadata":
        return cls(
            lease_id=response.get("lease_id") or "",
            lease_duration=int(response.get("lease_duration") or 0),
            renewable=bool(response.get("renewable", False)),
        )
