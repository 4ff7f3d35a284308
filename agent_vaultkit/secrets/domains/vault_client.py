"""HashiCorp Vault client wrapper."""
import logging
import socket
import threading
import weakref
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import hvac
import requests
from hvac import exceptions as hvac_exceptions
from requests.adapters import HTTPAdapter
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from .errors import AuthError, ConfigurationError, NotFoundError, TransportError

logger = logging.getLogger(__name__)

# Status codes Vault uses to deny credentials on a login or read
_DENIED = (
    hvac_exceptions.InvalidRequest,
    hvac_exceptions.Unauthorized,
    hvac_exceptions.Forbidden,
)

def normalize_address(address: str) -> str:
    """
    Turn a configured Vault address into a client URL.

    Accepts either a URL (``https://vault:8200``) or a bare ``host:port``,
    which is assumed to be plain HTTP like the Vault CLI's dev default.

    Raises:
        ConfigurationError: If the address is empty or not an http(s) URL
    """
    if not address or not address.strip():
        raise ConfigurationError("Vault address is empty")

    address = address.strip()
    if "://" not in address:
        address = f"http://{address}"

    try:
        parsed = urlparse(address)
        parsed.port
    except ValueError as e:
        raise ConfigurationError(f"Malformed Vault address {address!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ConfigurationError(f"Malformed Vault address: {address!r}")

    return address.rstrip("/")


def _tracking_pool(base, adapter: "AbortableHTTPAdapter"):
    class TrackingPool(base):
        def _get_conn(self, timeout=None):
            conn = super()._get_conn(timeout=timeout)
            adapter.track(conn)
            return conn

        def _put_conn(self, conn):
            if conn is not None:
                adapter.untrack(conn)
            super()._put_conn(conn)

    return TrackingPool


class AbortableHTTPAdapter(HTTPAdapter):
    """A requests adapter that can break connections a request is blocked on.

    Connections are tracked while checked out of their pool. ``abort`` shuts
    their sockets down from any thread, so a request waiting on Vault fails
    immediately instead of running until the timeout.
    """

    def __init__(self, *args, **kwargs):
        self._lock = threading.Lock()
        self._live = weakref.WeakSet()
        super().__init__(*args, **kwargs)

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _tracking_pool(HTTPConnectionPool, self),
            "https": _tracking_pool(HTTPSConnectionPool, self),
        }

    def track(self, conn) -> None:
        with self._lock:
            self._live.add(conn)

    def untrack(self, conn) -> None:
        with self._lock:
            self._live.discard(conn)

    def abort(self) -> int:
        """Shut down every in-flight connection and close the pools.

        Returns:
            Number of sockets shut down
        """
        with self._lock:
            conns = list(self._live)
            self._live.clear()

        aborted = 0
        for conn in conns:
            sock = getattr(conn, "sock", None)
            if sock is None:
                continue
            try:
                sock.shutdown(socket.SHUT_RDWR)
                aborted += 1
            except OSError as e:
                logger.debug(f"Socket already closed: {e}")
        self.close()
        return aborted


def _http_session(verify: bool) -> requests.Session:
    http = requests.Session()
    # hvac prefers a passed session's verify flag over its own argument
    http.verify = verify
    adapter = AbortableHTTPAdapter()
    http.mount("http://", adapter)
    http.mount("https://", adapter)
    return http


class VaultSession:
    """An hvac client bound to one Vault address, plus its bearer token once logged in.

    Every hvac client the session creates (the token client and any unwrap
    client) shares one requests session, so ``abort`` and ``close`` reach
    requests made by either.
    """

    def __init__(self, address: str, timeout: int = 30, verify: bool = True):
        self.address = normalize_address(address)
        self.timeout = timeout
        self.verify = verify
        self._http: Optional[requests.Session] = None
        self._client: Optional[hvac.Client] = None
        self._unwrapper: Optional[hvac.Client] = None

    @classmethod
    def connect(cls, address: str, timeout: int = 30, verify: bool = True) -> "VaultSession":
        """Build a session. No request is sent until the first write or read."""
        return cls(address, timeout=timeout, verify=verify)

    @property
    def http(self) -> requests.Session:
        if self._http is None:
            self._http = _http_session(self.verify)
        return self._http

    @property
    def client(self) -> hvac.Client:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = hvac.Client(url=self.address, timeout=self.timeout, verify=self.verify, session=self.http)
        return self._client

    @property
    def authenticated(self) -> bool:
        return self._client is not None and bool(self._client.token)

    def set_token(self, token: str) -> None:
        """Attach a bearer token to every later request, replacing any previous one."""
        self.client.token = token

    def write(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Issue a login-style write.

        Args:
            path: Vault API path, e.g. ``auth/approle/login``
            payload: Request body

        Returns:
            The decoded response body

        Raises:
            AuthError: If Vault rejects the credentials
            TransportError: If Vault cannot be reached or fails
        """
        logger.debug(f"Vault write: {path}")
        try:
            response = self.client.write_data(path, data=payload)
        except _DENIED as e:
            raise AuthError(f"Vault denied write to {path!r}: {e}", path=path) from e
        except (hvac_exceptions.VaultError, requests.exceptions.RequestException) as e:
            raise TransportError(f"Vault write to {path!r} failed: {e}", path=path) from e
        return _as_body(response)

    def read(self, path: str) -> Dict[str, Any]:
        """
        Read a secret by path.

        Raises:
            NotFoundError: If no secret resolves at the path
            AuthError: If the token may not read the path
            TransportError: If Vault cannot be reached or fails
        """
        logger.debug(f"Vault read: {path}")
        try:
            response = self.client.read(path)
        except hvac_exceptions.InvalidPath as e:
            raise NotFoundError(f"no secret found at {path!r}", path=path) from e
        except (hvac_exceptions.Unauthorized, hvac_exceptions.Forbidden) as e:
            raise AuthError(f"Vault denied read of {path!r}: {e}", path=path) from e
        except (hvac_exceptions.VaultError, requests.exceptions.RequestException) as e:
            raise TransportError(f"Vault read of {path!r} failed: {e}", path=path) from e

        if response is None:
            raise NotFoundError(f"no secret found at {path!r}", path=path)
        return _as_body(response)

    def unwrap(self, wrapping_token: str) -> Dict[str, Any]:
        """
        Unwrap a response-wrapping token.

        The wrapping token authenticates its own unwrap call, so a separate
        client is used and this session's token is left untouched.

        Raises:
            AuthError: If the wrapping token is invalid, expired or already used
            TransportError: If Vault cannot be reached or fails
        """
        logger.debug("Vault unwrap: sys/wrapping/unwrap")
        self._unwrapper = hvac.Client(
            url=self.address,
            token=wrapping_token,
            timeout=self.timeout,
            verify=self.verify,
            session=self.http,
        )
        try:
            response = self._unwrapper.sys.unwrap()
        except _DENIED as e:
            raise AuthError(f"Vault rejected wrapping token: {e}", path="sys/wrapping/unwrap") from e
        except (hvac_exceptions.VaultError, requests.exceptions.RequestException) as e:
            raise TransportError(f"Vault unwrap failed: {e}", path="sys/wrapping/unwrap") from e
        finally:
            self._unwrapper = None
        return _as_body(response)

    def abort(self) -> None:
        """Break any request still in flight on this session, then close it.

        Safe to call from the event loop while a worker thread is blocked
        in a read, write or unwrap.
        """
        if self._http is not None:
            adapter = self._http.get_adapter(self.address)
            if isinstance(adapter, AbortableHTTPAdapter):
                aborted = adapter.abort()
                logger.debug(f"Aborted {aborted} in-flight Vault connection(s)")
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP session; safe to call more than once."""
        if self._http is not None:
            self._http.close()


def _as_body(response: Any) -> Dict[str, Any]:
    # hvac returns a requests.Response for 204 No Content
    if isinstance(response, dict):
        return response
    return {}
