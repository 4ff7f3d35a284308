"""agent-vaultkit: fetch credentials from HashiCorp Vault with Kubernetes or AppRole auth."""
from .secrets import *  # noqa: F401,F403
from .secrets.domains.config_loader import load_environment  # noqa: F401

__version__ = "0.1.0"
