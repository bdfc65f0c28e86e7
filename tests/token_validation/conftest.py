import threading
import time
from typing import Any

import jwt
import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask
from jwt.algorithms import RSAAlgorithm

ISSUER = "http://auth-bar-baz.test/baz"
JWKS_URL = ISSUER + "/.well-known/jwks"
DISCOVERY_URL = ISSUER + "/.well-known/openid-configuration"


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    return app


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_jwk(private_key: rsa.RSAPrivateKey):
    """
    Factory fixture that returns a function.

    Usage in tests:
        jwk = make_jwk(kid="k1")
    """

    def _make(*, kid: str = "foo-bar-baz", key: rsa.RSAPrivateKey | None = None, **extra: Any):
        jwk = RSAAlgorithm.to_jwk((key or private_key).public_key(), as_dict=True)
        jwk.update({"kid": kid, "use": "sig", **extra})
        return jwk

    return _make


@pytest.fixture
def sign(private_key: rsa.RSAPrivateKey):
    """
    Factory fixture signing a payload as an RS256 JWT.

    Usage in tests:
        token = sign({"key": "val"}, kid="k1")
    """

    def _sign(
        payload: dict[str, Any],
        *,
        kid: str | None = "foo-bar-baz",
        key: rsa.RSAPrivateKey | None = None,
        algorithm: str = "RS256",
    ) -> str:
        headers = {"kid": kid} if kid is not None else {}
        return jwt.encode(payload, key or private_key, algorithm=algorithm, headers=headers)

    return _sign


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)  # type: ignore[arg-type]

    def json(self) -> Any:
        if isinstance(self._payload, (str, bytes)):
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    """
    Minimal requests.Session stub.

    Routes map a URL to a payload, a FakeResponse, or an exception to raise.
    Every GET is recorded in ``calls``. When ``release`` is set, each GET
    blocks on it after signalling ``started``.
    """

    def __init__(self, routes: dict[str, Any] | None = None):
        self.routes: dict[str, Any] = routes or {}
        self.calls: list[str] = []
        self.timeouts: list[float | None] = []
        self.started = threading.Event()
        self.release: threading.Event | None = None
        self._lock = threading.Lock()

    def get(self, url: str, timeout: float | None = None):
        with self._lock:
            self.calls.append(url)
            self.timeouts.append(timeout)
        self.started.set()
        if self.release is not None:
            assert self.release.wait(timeout=5), "release event never set"

        if url not in self.routes:
            return FakeResponse({"error": "not found"}, status_code=404)

        route = self.routes[url]
        if isinstance(route, BaseException):
            raise route
        if isinstance(route, FakeResponse):
            return route
        return FakeResponse(route)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


def wait_for(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.001)
