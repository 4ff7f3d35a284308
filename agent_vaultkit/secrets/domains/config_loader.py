"""Configuration loader for agent-vaultkit."""
import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

from .errors import ConfigurationError
from .models import Environment, KubernetesEnv, SecretIDEnv

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "VAULTKIT_CONFIG"

# Environment variable -> (config section, key). Variables win over the file.
ENV_OVERRIDES = {
    "VAULT_ADDRESS": ("vault", "address"),
    "VAULT_APPROLE_ROLE_ID": ("vault", "role_id"),
    "VAULT_TIMEOUT": ("vault", "timeout"),
    "VAULT_APPROLE_JWT_TOKEN_FILE": ("kubernetes", "jwt_token_file"),
    "VAULT_DATABASE_CREDS_PATH": ("kubernetes", "database_creds_path"),
    "VAULT_DATABASE_CREDS_FIELDS": ("kubernetes", "database_creds_fields"),
    "VAULT_APPROLE_SECRET_ID_FILE": ("approle", "secret_id_file"),
    "VAULT_APPROLE_DATABASE_CREDS_PATH": ("approle", "database_creds_path"),
    "VAULT_API_KEY_PATH": ("approle", "api_key_path"),
    "VAULT_API_KEY_FIELD": ("approle", "api_key_field"),
}

SECTIONS = ("vault", "kubernetes", "approle")


def default_config_path() -> Path:
    """~/.config/agent-vaultkit/config.yml, resolved against the current home."""
    return Path.home() / ".config" / "agent-vaultkit" / "config.yml"


def _get_config_path(config_path: Optional[str] = None) -> Optional[str]:
    """
    Get config file path.

    Priority order:
    1. Explicit path (``--config``); must exist
    2. VAULTKIT_CONFIG environment variable
    3. Default location: ~/.config/agent-vaultkit/config.yml

    Returns:
        Absolute path to config file, or None when no file is present and
        configuration comes from environment variables only

    Raises:
        ConfigurationError: If an explicit path does not exist
    """
    if config_path:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found at: {path}")
        return str(path.resolve())

    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        path = Path(env_path).expanduser()
        if path.is_file():
            logger.info(f"Using config from {CONFIG_PATH_ENV}: {path}")
            return str(path.resolve())
        logger.warning(f"Config path from {CONFIG_PATH_ENV} doesn't exist: {path}")

    default_config = default_config_path()
    if default_config.is_file():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    return None


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and validate the YAML configuration file.

    Returns:
        Dict with optional ``vault``, ``kubernetes`` and ``approle`` sections;
        empty when no config file is found

    Raises:
        ConfigurationError: If the file cannot be read, parsed or has the wrong shape
    """
    path = _get_config_path(config_path)
    if path is None:
        logger.info("No config file found, using environment variables and defaults")
        return {}

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML config at {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file at {path}: {e}") from e

    if not config:
        raise ConfigurationError(f"Config file at {path} is empty")

    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file at {path} must be a mapping of sections")

    unknown = sorted(set(config) - set(SECTIONS))
    if unknown:
        raise ConfigurationError(
            f"Unknown section(s) {', '.join(unknown)} in config at {path}\n"
            f"Supported sections: {', '.join(SECTIONS)}"
        )

    for section in SECTIONS:
        if section in config and not isinstance(config[section], dict):
            raise ConfigurationError(f"Section '{section}' in config at {path} must be a mapping")

    logger.info(f"Configuration loaded successfully from {path}")
    return config


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    merged = {section: dict(config.get(section) or {}) for section in SECTIONS}
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(variable)
        if value:
            logger.debug(f"Using {variable} from environment for {section}.{key}")
            merged[section][key] = value
    return merged


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off"):
        return False
    raise ConfigurationError(f"'{name}' must be a boolean, got {value!r}")


def _as_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{name}' must be an integer, got {value!r}") from e
    if number <= 0:
        raise ConfigurationError(f"'{name}' must be positive, got {number}")
    return number


def _as_str(value: Any, name: str) -> str:
    if value is None:
        raise ConfigurationError(f"'{name}' is set but has no value; remove the key or give it a value")
    if isinstance(value, (dict, list)):
        raise ConfigurationError(f"'{name}' must be a string, got {type(value).__name__}")
    return str(value)


def load_environment(config_path: Optional[str] = None) -> Environment:
    """
    Build the Environment used by the credential fetchers.

    Values come from the YAML config file, overridden by environment
    variables (VAULT_ADDRESS, VAULT_APPROLE_ROLE_ID, ...), falling back to the
    defaults in models.

    Raises:
        ConfigurationError: If the config is malformed or no role id is set
    """
    config = _apply_env_overrides(load_config(config_path))
    vault, kube, approle = config["vault"], config["kubernetes"], config["approle"]

    env = Environment()
    kubernetes = KubernetesEnv()
    secret_id = SecretIDEnv()

    if "address" in vault:
        env.vault_address = _as_str(vault["address"], "vault.address")
    if "role_id" in vault:
        env.approle_role_id = _as_str(vault["role_id"], "vault.role_id")
    if "timeout" in vault:
        env.timeout = _as_int(vault["timeout"], "vault.timeout")
    if "verify" in vault:
        env.verify = _as_bool(vault["verify"], "vault.verify")

    for key in ("jwt_token_file", "database_creds_path", "database_creds_fields", "mount_point"):
        if key in kube:
            setattr(kubernetes, key, _as_str(kube[key], f"kubernetes.{key}"))

    for key in ("secret_id_file", "database_creds_path", "api_key_path", "api_key_field", "mount_point"):
        if key in approle:
            setattr(secret_id, key, _as_str(approle[key], f"approle.{key}"))
    if "secret_id_wrapped" in approle:
        secret_id.secret_id_wrapped = _as_bool(approle["secret_id_wrapped"], "approle.secret_id_wrapped")

    if not env.approle_role_id:
        raise ConfigurationError(
            "Missing Vault role id\n"
            "Set VAULT_APPROLE_ROLE_ID or add it to the config file:\n"
            "vault:\n"
            "  role_id: your-role"
        )

    env.kubernetes = kubernetes
    env.secret_id = secret_id
    logger.debug(f"Using vault address: {env.vault_address}")
    return env
