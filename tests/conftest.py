"""Shared fixtures: a call-counting stand-in for the Vault transport, and a local HTTP Vault."""
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from agent_vaultkit.secrets.domains.errors import NotFoundError
from agent_vaultkit.secrets.domains.models import Environment, KubernetesEnv, SecretIDEnv

JWT = "eyJhbGciOiJSUzI1NiIsImtpZCI6InRlc3QifQ.eyJzdWIiOiJzeXN0ZW06c2VydmljZWFjY291bnQ6ZGVmYXVsdDp2YXVsdC1hdXRoIn0.c2ln"


class FakeVault:
    """Scripted Vault: records every call made through sessions it hands out."""

    def __init__(self):
        self.calls = []
        self.sessions = []
        self.login_response = {"auth": {"client_token": "s.client-token"}}
        self.unwrap_response = {"data": {"secret_id": "unwrapped-secret-id"}}
        self.reads = {}

    def factory(self, address, timeout=30, verify=True):
        session = FakeVaultSession(self, address)
        self.sessions.append(session)
        return session

    def remote_calls(self):
        return [call for call in self.calls if call[0] in ("write", "read", "unwrap")]


class FakeVaultSession:
    def __init__(self, vault, address):
        self.vault = vault
        self.address = address
        self.token = None
        self.closed = False

    def set_token(self, token):
        self.vault.calls.append(("set_token", token))
        self.token = token

    def write(self, path, payload):
        self.vault.calls.append(("write", path, dict(payload)))
        response = self.vault.login_response
        if isinstance(response, Exception):
            raise response
        return response

    def read(self, path):
        self.vault.calls.append(("read", path))
        response = self.vault.reads.get(path)
        if response is None:
            raise NotFoundError(f"no secret found at {path!r}", path=path)
        if isinstance(response, Exception):
            raise response
        return response

    def unwrap(self, wrapping_token):
        self.vault.calls.append(("unwrap", wrapping_token))
        response = self.vault.unwrap_response
        if isinstance(response, Exception):
            raise response
        return response

    def abort(self):
        self.vault.calls.append(("abort",))
        self.close()

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def clean_vault_env(monkeypatch):
    """Keep the developer's VAULT_* variables out of the tests."""
    for variable in (
        "VAULTKIT_CONFIG",
        "VAULT_ADDRESS",
        "VAULT_APPROLE_ROLE_ID",
        "VAULT_TIMEOUT",
        "VAULT_APPROLE_JWT_TOKEN_FILE",
        "VAULT_DATABASE_CREDS_PATH",
        "VAULT_DATABASE_CREDS_FIELDS",
        "VAULT_APPROLE_SECRET_ID_FILE",
        "VAULT_APPROLE_DATABASE_CREDS_PATH",
        "VAULT_API_KEY_PATH",
        "VAULT_API_KEY_FIELD",
    ):
        monkeypatch.delenv(variable, raising=False)


@pytest.fixture
def fake_vault():
    return FakeVault()


@pytest.fixture
def jwt_file(tmp_path):
    path = tmp_path / "jwttoken"
    path.write_text(JWT + "\n")
    return path


@pytest.fixture
def secret_id_file(tmp_path):
    path = tmp_path / "secret"
    path.write_text("s.wrapping-token\n")
    return path


@pytest.fixture
def env(jwt_file, secret_id_file):
    """An Environment pointing at local credential files."""
    return Environment(
        vault_address="http://localhost:8200",
        approle_role_id="example",
        kubernetes=KubernetesEnv(
            jwt_token_file=str(jwt_file),
            database_creds_path="secret/data/myapp/config",
            database_creds_fields="username,password",
        ),
        secret_id=SecretIDEnv(
            secret_id_file=str(secret_id_file),
            database_creds_path="database/creds/dev-readonly",
            api_key_path="kv-v2/data/api-key",
            api_key_field="api-key-field",
        ),
    )


@pytest.fixture
def kv_config_response():
    return {
        "request_id": "a1b2",
        "lease_id": "",
        "lease_duration": 0,
        "renewable": False,
        "data": {
            "data": {"username": "appuser", "password": "s3cr3t"},
            "metadata": {"version": 1},
        },
    }


@pytest.fixture
def database_creds_response():
    return {
        "request_id": "c3d4",
        "lease_id": "database/creds/dev-readonly/abc123",
        "lease_duration": 3600,
        "renewable": True,
        "data": {"username": "v-approle-dev-readonly-xyz", "password": "A1a-generated"},
    }


class StallingVault:
    """A Vault HTTP API on localhost that hangs on one path until released."""

    def __init__(self, stall_path, responses):
        self.stall_path = stall_path
        self.responses = responses
        self.requests = []
        self.stalled = threading.Event()
        self.release = threading.Event()
        self.answered_stall = False
        self.server = ThreadingHTTPServer(("127.0.0.1", 0), self._handler())
        self.server.daemon_threads = True
        self.address = f"http://127.0.0.1:{self.server.server_address[1]}"

    def _handler(self):
        vault = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                self._respond()

            def do_POST(self):
                self._respond()

            def log_message(self, format, *args):
                pass

            def _respond(self):
                length = int(self.headers.get("Content-Length") or 0)
                if length:
                    self.rfile.read(length)
                path = self.path.split("?")[0][len("/v1/"):]
                vault.requests.append((self.command, path))
                if path == vault.stall_path:
                    vault.stalled.set()
                    if not vault.release.wait(timeout=10):
                        return
                    vault.answered_stall = True

                body = json.dumps(vault.responses.get(path, {})).encode()
                try:
                    self.send_response(200 if path in vault.responses else 404)
                    self.send_header("Content-Type", "application/json")
                    self.send_header("Content-Length", str(len(body)))
                    self.end_headers()
                    self.wfile.write(body)
                except OSError:
                    # Client went away
                    return

        return Handler

    def start(self):
        threading.Thread(target=self.server.serve_forever, name="stalling-vault", daemon=True).start()
        return self

    def stop(self):
        self.release.set()
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture
def stalling_vault(monkeypatch):
    """Factory for a local Vault server that stalls on the given API path."""
    for variable in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")

    servers = []

    def start(stall_path):
        vault = StallingVault(stall_path, {
            "sys/wrapping/unwrap": {"data": {"secret_id": "unwrapped-secret-id"}},
            "auth/approle/login": {"auth": {"client_token": "s.client-token"}},
            "kv-v2/data/api-key": {"data": {"data": {"api-key-field": "k-123"}, "metadata": {"version": 1}}},
        }).start()
        servers.append(vault)
        return vault

    yield start
    for vault in servers:
        vault.stop()
