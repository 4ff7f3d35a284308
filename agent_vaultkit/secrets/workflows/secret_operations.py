"""Workflows that log in to Vault and fetch credentials."""
import asyncio
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple

from ..domains.approle_auth import AppRoleAuthFlow
from ..domains.auth import ClientFactory
from ..domains.errors import ConfigurationError, VaultKitError
from ..domains.extraction import decode_credentials, extract_fields, split_fields
from ..domains.kubernetes_auth import KubernetesAuthFlow
from ..domains.models import Credentials, Environment, LeaseMetadata, VaultParameters
from ..domains.vault_client import VaultSession

logger = logging.getLogger(__name__)


@contextmanager
def _stage(description: str) -> Iterator[None]:
    """Tag any VaultKitError escaping the block with the stage that failed."""
    try:
        yield
    except VaultKitError as e:
        e.add_context(description)
        raise


async def fetch_by_kubernetes_auth(
    env: Environment,
    cancel: Optional[asyncio.Event] = None,
    logger: logging.Logger = logger,
    client_factory: ClientFactory = VaultSession.connect,
) -> Dict[str, str]:
    """
    Fetch secret fields after logging in with the pod's service-account token.

    Args:
        env: Vault address, role id and Kubernetes settings
        cancel: Optional signal that aborts the outstanding remote call
        logger: Logger for the login and read progress messages
        client_factory: Builds the Vault session (swap for a stub in tests)

    Returns:
        Mapping of each configured field name to its string value

    Raises:
        ConfigurationError: If no fields are configured (before any I/O)
        VaultKitError: Any login, read or payload failure, tagged with its stage
    """
    with _stage("fetch_by_kubernetes_auth"):
        fields = split_fields(env.kubernetes.database_creds_fields)
        if not fields:
            raise ConfigurationError("no secret fields configured (kubernetes.database_creds_fields)")

        flow = KubernetesAuthFlow(VaultParameters.for_kubernetes(env), client_factory, logger)
        with _stage("kubernetes login"):
            session = await flow.login(cancel)
        try:
            with _stage(f"read secret {flow.parameters.database_creds_path!r}"):
                payload = await flow.read_secret(session, cancel)
            with _stage("extract fields"):
                return extract_fields(payload, fields)
        finally:
            session.close()


async def fetch_database_credentials_by_approle(
    env: Environment,
    cancel: Optional[asyncio.Event] = None,
    logger: logging.Logger = logger,
    client_factory: ClientFactory = VaultSession.connect,
) -> Tuple[Credentials, LeaseMetadata]:
    """
    Fetch a new set of temporary database credentials with AppRole.

    The database secret engine returns the credentials directly under the
    response's ``data`` key, next to the lease.

    Returns:
        The credentials and the lease they were issued under. The lease is
        reported only; renewal is left to the caller.
    """
    with _stage("fetch_database_credentials_by_approle"):
        flow = AppRoleAuthFlow(VaultParameters.for_approle(env), client_factory, logger)
        path = flow.parameters.database_creds_path
        with _stage("approle login"):
            session = await flow.login(cancel)
        try:
            logger.info("Getting temporary database credentials from vault")
            with _stage(f"read database credentials {path!r}"):
                response = await flow.call(session, session.read, path, cancel=cancel)
            with _stage("decode credentials"):
                credentials = decode_credentials(response)
        finally:
            session.close()

        lease = LeaseMetadata.from_response(response)
        logger.info("Getting temporary database credentials from vault: success!")
        logger.info(f"Credentials lease duration: {lease.lease_duration}s")
        return credentials, lease


async def fetch_api_keys_by_approle(
    env: Environment,
    cancel: Optional[asyncio.Event] = None,
    logger: logging.Logger = logger,
    client_factory: ClientFactory = VaultSession.connect,
) -> Dict[str, str]:
    """Fetch the configured API key fields from kv-v2 after an AppRole login."""
    with _stage("fetch_api_keys_by_approle"):
        fields = split_fields(env.secret_id.api_key_field)
        if not fields:
            raise ConfigurationError("no API key fields configured (approle.api_key_field)")

        flow = AppRoleAuthFlow(VaultParameters.for_approle(env), client_factory, logger)
        path = flow.parameters.api_key_path
        with _stage("approle login"):
            session = await flow.login(cancel)
        try:
            logger.info("Getting secret api keys from vault")
            with _stage(f"read api keys {path!r}"):
                response = await flow.call(session, session.read, path, cancel=cancel)
            with _stage("extract fields"):
                api_keys = extract_fields(response.get("data"), fields)
        finally:
            session.close()

        logger.info("Getting secret api keys from vault: success!")
        return api_keys
