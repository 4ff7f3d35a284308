"""Vault login with a Kubernetes service-account token."""
import asyncio
from typing import Any, Dict, Optional, Tuple

from .auth import AuthFlow, client_token, read_credential_file
from .cancellation import run_cancellable
from .errors import FetchCancelledError, LoginError, SecretReadError, VaultKitError
from .vault_client import VaultSession


class KubernetesAuthFlow(AuthFlow):
    """Exchange the pod's service-account JWT for a Vault token, then read one secret.

    Kubernetes mounts the token at
    /var/run/secrets/kubernetes.io/serviceaccount/token by default. The role is
    the Vault role bound to this application's service account.
    """

    method = "kubernetes"

    async def login(self, cancel: Optional[asyncio.Event] = None) -> VaultSession:
        session = self.connect()
        try:
            jwt = await run_cancellable(
                read_credential_file, self.parameters.jwt_token_file, "service account token", cancel=cancel
            )

            path = self.login_path()
            self.logger.info(f"Logging in to vault with kubernetes auth; role: {self.parameters.role_id}")
            response = await self.call(
                session, session.write, path, {"jwt": jwt, "role": self.parameters.role_id}, cancel=cancel
            )
            token = client_token(response)
            if not token:
                raise LoginError("login response did not return client token", path=path)

            session.set_token(token)
            self.logger.info("Logging in to vault with kubernetes auth: success!")
        except BaseException:
            session.close()
            raise
        return session

    async def read_secret(self, session: VaultSession, cancel: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        """
        Read the configured secret with an authenticated session.

        Returns:
            The response's ``data`` entry; for a kv-v2 path this is
            ``{"data": {...}, "metadata": {...}}``

        Raises:
            SecretReadError: If the read fails (NotFoundError when nothing is there)
        """
        path = self.parameters.database_creds_path
        self.logger.info(f"Getting secret from vault @ {path}")
        try:
            response = await self.call(session, session.read, path, cancel=cancel)
        except (SecretReadError, FetchCancelledError):
            raise
        except VaultKitError as e:
            raise SecretReadError(f"unable to read secret: {e}", path=path) from e

        self.logger.info("Getting secret from vault: success!")
        return response.get("data")

    async def fetch(self, cancel: Optional[asyncio.Event] = None) -> Tuple[VaultSession, Dict[str, Any]]:
        """Log in and read the configured secret; the caller extracts fields from the payload."""
        session = await self.login(cancel)
        try:
            payload = await self.read_secret(session, cancel)
        except BaseException:
            session.close()
            raise
        return session, payload
