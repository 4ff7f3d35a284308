"""Error taxonomy for Vault credential acquisition.

Every error raised by the package derives from ``VaultKitError``. Errors keep
their class as they propagate upward; callers add the stage that failed with
``add_context`` so the rendered message reads outermost-first, e.g.::

    fetch_api_keys_by_approle: read api keys: no secret found at 'kv-v2/data/api-key'
"""
from typing import List, Optional


class VaultKitError(Exception):
    """Base class for all agent-vaultkit errors."""

    def __init__(self, message: str, *, path: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.field = field
        self.context: List[str] = []

    def add_context(self, stage: str) -> "VaultKitError":
        """Prepend a stage description and return self for re-raising."""
        self.context.insert(0, stage)
        return self

    def __str__(self) -> str:
        return ": ".join(self.context + [self.message])


class ConfigurationError(VaultKitError):
    """Configuration is missing or malformed; raised before any remote call."""


class CredentialSourceError(VaultKitError):
    """A local credential file (service-account token, secret id) is unreadable."""


class TransportError(VaultKitError):
    """Vault could not be reached or failed to answer the request."""


class AuthError(VaultKitError):
    """Vault rejected the presented credentials."""


class LoginError(AuthError):
    """Login was accepted on the wire but yielded no usable client token."""


class SecretReadError(VaultKitError):
    """Reading a secret after login failed."""


class NotFoundError(SecretReadError):
    """No secret resolves at the requested path."""


class PayloadError(VaultKitError):
    """The secret payload does not have the expected shape."""


class StructureError(PayloadError):
    """The payload's ``data`` entry is missing or not a mapping."""


class MissingFieldError(PayloadError):
    """A requested field is absent from the payload."""


class FieldTypeError(PayloadError):
    """A requested field holds a non-string value."""


class DecodeError(PayloadError):
    """The payload could not be decoded into a typed record."""


class FetchCancelledError(VaultKitError):
    """The caller's cancellation signal fired during a fetch."""
