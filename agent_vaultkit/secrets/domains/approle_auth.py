"""Vault login with AppRole and a response-wrapped secret id.

A RoleID plus a SecretID is required to log in with AppRole. The SecretID must
be protected, so rather than handing it to the application directly a trusted
orchestrator drops a short-lived response-wrapping token into a file; only the
holder of that token can unwrap it, and only once.

ref: https://developer.hashicorp.com/vault/docs/concepts/response-wrapping
ref: https://developer.hashicorp.com/vault/tutorials/auth-methods/approle-best-practices
"""
import asyncio
from collections.abc import Mapping
from typing import Optional

from .auth import AuthFlow, client_token, read_credential_file
from .cancellation import run_cancellable
from .errors import LoginError
from .vault_client import VaultSession


class AppRoleAuthFlow(AuthFlow):
    """Log in with a role id and a (wrapped) secret id; no secret is read here."""

    method = "approle"

    async def resolve_secret_id(self, session: VaultSession, cancel: Optional[asyncio.Event] = None) -> str:
        secret_id = await run_cancellable(
            read_credential_file, self.parameters.secret_id_file, "approle secret id", cancel=cancel
        )
        if not self.parameters.secret_id_wrapped:
            return secret_id

        self.logger.info("Unwrapping approle secret id")
        response = await self.call(session, session.unwrap, secret_id, cancel=cancel)
        data = response.get("data")
        unwrapped = data.get("secret_id") if isinstance(data, Mapping) else None
        if not isinstance(unwrapped, str) or not unwrapped:
            raise LoginError("wrapping token did not unwrap to a secret id", path="sys/wrapping/unwrap")
        return unwrapped

    async def login(self, cancel: Optional[asyncio.Event] = None) -> VaultSession:
        session = self.connect()
        try:
            secret_id = await self.resolve_secret_id(session, cancel)

            path = self.login_path()
            self.logger.info(f"Logging in to vault with approle auth; role id: {self.parameters.role_id}")
            response = await self.call(
                session, session.write, path, {"role_id": self.parameters.role_id, "secret_id": secret_id},
                cancel=cancel,
            )
            token = client_token(response)
            if not token:
                raise LoginError("no approle info was returned after login", path=path)

            session.set_token(token)
            self.logger.info("Logging in to vault with approle auth: success!")
        except BaseException:
            session.close()
            raise
        return session
