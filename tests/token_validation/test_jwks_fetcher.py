import pytest
import requests
from conftest import DISCOVERY_URL, ISSUER, JWKS_URL, FakeResponse, FakeSession

import auth_token_validation as m

JWKS = {"keys": [{"kid": "k1", "kty": "RSA", "n": "AQAB", "e": "AQAB"}]}


def test_fetch_reads_well_known_jwks(fake_session: FakeSession):
    fake_session.routes[JWKS_URL] = JWKS
    fetcher = m.JWKSFetcher(ISSUER, session=fake_session, timeout=3)  # type: ignore[arg-type]

    assert fetcher.fetch() == JWKS
    assert fake_session.calls == [JWKS_URL]
    assert fake_session.timeouts == [3]


def test_fetch_follows_discovery_document(fake_session: FakeSession):
    jwks_uri = "http://keys.test/somewhere-else"
    fake_session.routes[DISCOVERY_URL] = {"issuer": ISSUER, "jwks_uri": jwks_uri}
    fake_session.routes[jwks_uri] = JWKS
    fetcher = m.JWKSFetcher(ISSUER, use_discovery=True, session=fake_session)  # type: ignore[arg-type]

    assert fetcher.fetch() == JWKS
    assert fake_session.calls == [DISCOVERY_URL, jwks_uri]


@pytest.mark.parametrize(
    "route",
    [
        FakeResponse({"message": "boom"}, status_code=500),
        requests.ConnectionError("connection refused"),
        requests.Timeout("read timed out"),
        FakeResponse("<html>not json</html>"),
        {"not_keys": []},
        {"keys": "nope"},
    ],
)
def test_fetch_failures_become_lookup_failed(fake_session: FakeSession, route):
    fake_session.routes[JWKS_URL] = route
    fetcher = m.JWKSFetcher(ISSUER, session=fake_session)  # type: ignore[arg-type]

    with pytest.raises(m.PublicKeyLookupFailed) as excinfo:
        fetcher.fetch()

    assert excinfo.value.inner is not None
    assert excinfo.value.__cause__ is excinfo.value.inner
    assert excinfo.value.status_code == 503


def test_fetch_unknown_path_is_lookup_failure(fake_session: FakeSession):
    fetcher = m.JWKSFetcher(ISSUER, session=fake_session)  # type: ignore[arg-type]

    with pytest.raises(m.PublicKeyLookupFailed) as excinfo:
        fetcher.fetch()

    assert isinstance(excinfo.value.inner, requests.HTTPError)


def test_discovery_without_jwks_uri_fails(fake_session: FakeSession):
    fake_session.routes[DISCOVERY_URL] = {"issuer": ISSUER}
    fetcher = m.JWKSFetcher(ISSUER, use_discovery=True, session=fake_session)  # type: ignore[arg-type]

    with pytest.raises(m.PublicKeyLookupFailed):
        fetcher.fetch()

    assert fake_session.calls == [DISCOVERY_URL]
