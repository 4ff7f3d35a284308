"""Shared login machinery for the Vault auth flows."""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Optional

from .cancellation import run_cancellable
from .errors import ConfigurationError, CredentialSourceError
from .models import VaultParameters
from .vault_client import VaultSession

ClientFactory = Callable[..., VaultSession]


def read_credential_file(path: str, description: str) -> str:
    """
    Read a mounted credential file (service-account JWT, wrapped secret id).

    Raises:
        CredentialSourceError: If the file is missing, unreadable or empty
    """
    if not path:
        raise CredentialSourceError(f"no {description} file configured")
    try:
        with open(path, "r", encoding="utf-8") as f:
            value = f.read().strip()
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialSourceError(f"unable to read file containing {description}: {e}", path=path) from e

    if not value:
        raise CredentialSourceError(f"file containing {description} is empty", path=path)
    return value


def client_token(response: Any) -> str:
    """Return ``auth.client_token`` from a login response, or an empty string."""
    if not isinstance(response, Mapping):
        return ""
    auth = response.get("auth")
    if not isinstance(auth, Mapping):
        return ""
    token = auth.get("client_token")
    return token if isinstance(token, str) else ""


class AuthFlow(ABC):
    """Log in to Vault and hand back an authenticated session.

    Subclasses implement ``login`` for one auth method. The client factory and
    logger are injectable so flows can run against a stub transport.
    """

    method = ""

    def __init__(
        self,
        parameters: VaultParameters,
        client_factory: ClientFactory = VaultSession.connect,
        logger: Optional[logging.Logger] = None,
    ):
        self.parameters = parameters
        self.client_factory = client_factory
        self.logger = logger or logging.getLogger(type(self).__module__)

    @abstractmethod
    async def login(self, cancel: Optional[asyncio.Event] = None) -> VaultSession:
        """Authenticate and return a session carrying the client token."""

    def login_path(self) -> str:
        return f"auth/{self.parameters.mount_point or self.method}/login"

    def connect(self) -> VaultSession:
        """Validate the role id and build an unauthenticated session."""
        if not self.parameters.role_id:
            raise ConfigurationError(f"{self.method} auth requires a role id")
        self.logger.info(f"Connecting to vault @ {self.parameters.address}")
        return self.client_factory(
            self.parameters.address,
            timeout=self.parameters.timeout,
            verify=self.parameters.verify,
        )

    async def call(self, session: VaultSession, func: Callable[..., Any], *args: Any,
                   cancel: Optional[asyncio.Event] = None) -> Any:
        """Run one remote call on session, aborting the session if cancelled mid-call."""
        return await run_cancellable(func, *args, cancel=cancel, on_cancel=session.abort)
