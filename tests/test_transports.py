"""
測試傳輸層：gh CLI / GitHub HTTP API / create_transport
"""

import base64
import subprocess

import pytest
import requests
from nacl import encoding, public

from transports import (
    GhCliTransport,
    GithubHttpTransport,
    MISSING_TOKEN_ERROR,
    create_transport,
    encrypt_secret,
)


# ── gh CLI ────────────────────────────────────────────────────────────────────

class FakeRun:
    def __init__(self, returncode=0, stderr="", exc=None):
        self.returncode = returncode
        self.stderr = stderr
        self.exc = exc
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append((args, kwargs))
        if self.exc:
            raise self.exc
        return subprocess.CompletedProcess(args, self.returncode, stdout="", stderr=self.stderr)


class TestGhCliTransport:

    def test_success(self, monkeypatch):
        fake = FakeRun(returncode=0)
        monkeypatch.setattr(subprocess, "run", fake)

        result = GhCliTransport().set_secret("owner/repo", "OPENCODE_AUTH_JSON", '{"a":1}')

        assert result.success is True
        assert result.error is None
        args, kwargs = fake.calls[0]
        assert args == ["gh", "secret", "set", "OPENCODE_AUTH_JSON", "--repo", "owner/repo", "--body", '{"a":1}']
        assert kwargs["capture_output"] is True
        assert kwargs["check"] is False

    def test_nonzero_exit_returns_stderr_verbatim(self, monkeypatch):
        stderr = "HTTP 404: Not Found (https://api.github.com/repos/owner/missing)\n"
        monkeypatch.setattr(subprocess, "run", FakeRun(returncode=1, stderr=stderr))

        result = GhCliTransport().set_secret("owner/missing", "S", "v")

        assert result.success is False
        assert result.error == stderr

    def test_missing_executable(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", FakeRun(exc=FileNotFoundError("No such file or directory: 'gh'")))

        result = GhCliTransport().set_secret("o/r", "S", "v")

        assert result.success is False
        assert "gh" in result.error

    def test_verify_auth(self, monkeypatch):
        fake = FakeRun(returncode=0)
        monkeypatch.setattr(subprocess, "run", fake)
        assert GhCliTransport().verify_auth() is True
        assert fake.calls[0][0] == ["gh", "auth", "status"]

        monkeypatch.setattr(subprocess, "run", FakeRun(returncode=1))
        assert GhCliTransport().verify_auth() is False

        monkeypatch.setattr(subprocess, "run", FakeRun(exc=OSError("boom")))
        assert GhCliTransport().verify_auth() is False


# ── GitHub HTTP ───────────────────────────────────────────────────────────────

class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        # 與 requests.Response.ok 相同：< 400 皆為 True
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    """依 (method, url 結尾) 回傳預設 response，並記錄所有請求"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []
        self.headers = {}

    def request(self, method, url, json=None, timeout=None):
        self.requests.append((method, url, json))
        for (m, suffix), outcome in self.routes.items():
            if m == method and url.endswith(suffix):
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        return FakeResponse(404, text='{"message":"Not Found"}')


@pytest.fixture
def keypair():
    private_key = public.PrivateKey.generate()
    key_b64 = private_key.public_key.encode(encoding.Base64Encoder()).decode("utf-8")
    return private_key, key_b64


def make_http(routes, token="ghp_test"):
    transport = GithubHttpTransport(token=token)
    transport.session = FakeSession(routes)
    return transport


class TestGithubHttpTransport:

    def test_headers(self):
        transport = GithubHttpTransport(token="ghp_test")
        assert transport.session.headers["Authorization"] == "Bearer ghp_test"
        assert transport.session.headers["Accept"] == "application/vnd.github+json"
        assert transport.session.headers["X-GitHub-Api-Version"] == "2022-11-28"

    def test_set_secret_encrypts_and_puts(self, keypair):
        private_key, key_b64 = keypair
        transport = make_http({
            ("GET", "/repos/owner/repo/actions/secrets/public-key"):
                FakeResponse(200, {"key_id": "kid-1", "key": key_b64}),
            ("PUT", "/repos/owner/repo/actions/secrets/MY_SECRET"): FakeResponse(204),
        })

        result = transport.set_secret("owner/repo", "MY_SECRET", "hello")

        assert result.success is True
        method, url, body = transport.session.requests[-1]
        assert method == "PUT"
        assert url == "https://api.github.com/repos/owner/repo/actions/secrets/MY_SECRET"
        assert body["key_id"] == "kid-1"
        decrypted = public.SealedBox(private_key).decrypt(base64.b64decode(body["encrypted_value"]))
        assert decrypted == b"hello"

    def test_public_key_failure(self):
        transport = make_http({
            ("GET", "/actions/secrets/public-key"): FakeResponse(403, text='{"message":"Forbidden"}'),
        })

        result = transport.set_secret("owner/repo", "S", "v")

        assert result.success is False
        assert result.error == 'Failed to get public key: {"message":"Forbidden"}'
        assert len(transport.session.requests) == 1

    def test_put_failure_returns_body_verbatim(self, keypair):
        _, key_b64 = keypair
        transport = make_http({
            ("GET", "/actions/secrets/public-key"): FakeResponse(200, {"key_id": "k", "key": key_b64}),
            ("PUT", "/actions/secrets/S"): FakeResponse(422, text='{"message":"Validation Failed"}'),
        })

        result = transport.set_secret("owner/repo", "S", "v")

        assert result.error == '{"message":"Validation Failed"}'

    def test_empty_error_body_falls_back_to_status(self, keypair):
        _, key_b64 = keypair
        transport = make_http({
            ("GET", "/actions/secrets/public-key"): FakeResponse(200, {"key_id": "k", "key": key_b64}),
            ("PUT", "/actions/secrets/S"): FakeResponse(500, text=""),
        })

        assert transport.set_secret("owner/repo", "S", "v").error == "HTTP 500"

    def test_redirect_is_not_success(self, keypair):
        _, key_b64 = keypair
        transport = make_http({
            ("GET", "/actions/secrets/public-key"): FakeResponse(200, {"key_id": "k", "key": key_b64}),
            ("PUT", "/actions/secrets/S"): FakeResponse(302, text="Moved"),
        })

        result = transport.set_secret("owner/repo", "S", "v")

        assert result.success is False
        assert result.error == "Moved"

    def test_redirected_public_key_is_failure(self):
        transport = make_http({
            ("GET", "/actions/secrets/public-key"): FakeResponse(301, text=""),
        })

        assert transport.set_secret("owner/repo", "S", "v").error == "Failed to get public key: HTTP 301"
        assert make_http({("GET", "/user"): FakeResponse(304)}).verify_auth() is False

    def test_invalid_public_key(self):
        transport = make_http({
            ("GET", "/actions/secrets/public-key"): FakeResponse(200, {"key_id": "k", "key": "c2hvcnQ="}),
        })

        result = transport.set_secret("owner/repo", "S", "v")

        assert result.success is False
        assert result.error.startswith("Failed to encrypt secret: ")

    def test_network_error(self):
        transport = make_http({
            ("GET", "/actions/secrets/public-key"): requests.ConnectionError("connection refused"),
        })

        result = transport.set_secret("owner/repo", "S", "v")

        assert result.error == "Failed to get public key: connection refused"

    def test_invalid_target(self):
        transport = make_http({})
        result = transport.set_secret("not-a-repo", "S", "v")

        assert result.success is False
        assert transport.session.requests == []

    def test_missing_token(self):
        transport = make_http({}, token=None)

        result = transport.set_secret("owner/repo", "S", "v")

        assert result.error == MISSING_TOKEN_ERROR
        assert transport.verify_auth() is False
        assert transport.session.requests == []

    def test_verify_auth(self):
        assert make_http({("GET", "/user"): FakeResponse(200, {"login": "me"})}).verify_auth() is True
        assert make_http({("GET", "/user"): FakeResponse(401, text="Bad credentials")}).verify_auth() is False


def test_encrypt_secret_round_trip(keypair):
    private_key, key_b64 = keypair
    sealed = encrypt_secret(key_b64, "日本語 🎉")
    assert public.SealedBox(private_key).decrypt(base64.b64decode(sealed)).decode("utf-8") == "日本語 🎉"


# ── create_transport ──────────────────────────────────────────────────────────

class TestCreateTransport:

    def test_gh(self):
        assert isinstance(create_transport("gh"), GhCliTransport)

    def test_http(self):
        transport = create_transport("http", github_token="ghp_x")
        assert isinstance(transport, GithubHttpTransport)
        assert transport.token == "ghp_x"

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_transport("carrier-pigeon")
