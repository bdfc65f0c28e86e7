from collections.abc import Callable
from typing import Any

import pytest

import auth_token_validation as m
from auth_token_validation import cache_stores


class FakeFetcher:
    """Duck-typed KeySetFetcher returning a configurable key set."""

    def __init__(self, keys: list[Any] | None = None):
        self.keys = keys or []
        self.error: Exception | None = None
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {"keys": list(self.keys)}


class CountingConverter:
    def __init__(self):
        self.kids: list[str] = []

    def __call__(self, jwk):
        self.kids.append(jwk["kid"])
        return m.jwk_to_key(jwk)


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch):
    now = [1000.0]  # use list to allow modification
    monkeypatch.setattr(cache_stores.time, "time", lambda: now[0])
    return now


def test_lookup_on_empty_cache_returns_none():
    cache = m.InMemoryKeyCache(FakeFetcher())

    assert cache.lookup("k1") is None
    assert len(cache) == 0
    assert cache.recently_refreshed() is False


def test_refresh_populates_entries(clock: list[float], make_jwk: Callable[..., Any]):
    cache = m.InMemoryKeyCache(FakeFetcher([make_jwk(kid="k1")]), max_key_age=600)

    cache.refresh()

    entry = cache.lookup("k1")
    assert entry is not None
    assert entry.expires_at == 1600.0
    assert entry.algorithms == ("RS256", "RS384", "RS512", "PS256", "PS384", "PS512")
    assert "k1" in cache


def test_entry_unusable_from_expiry_instant(clock: list[float], make_jwk: Callable[..., Any]):
    cache = m.InMemoryKeyCache(FakeFetcher([make_jwk(kid="k1")]), max_key_age=600)
    cache.refresh()

    clock[0] = 1599.0
    assert cache.lookup("k1") is not None

    clock[0] = 1600.0
    assert cache.lookup("k1") is None
    assert "k1" in cache  # still in the snapshot, just not usable


def test_refresh_drops_unpublished_keys(make_jwk: Callable[..., Any]):
    fetcher = FakeFetcher([make_jwk(kid="old"), make_jwk(kid="kept")])
    cache = m.InMemoryKeyCache(fetcher)
    cache.refresh()

    fetcher.keys = [make_jwk(kid="kept"), make_jwk(kid="new")]
    cache.refresh()

    assert cache.lookup("old") is None
    assert set(cache) == {"kept", "new"}


def test_refresh_reuses_unchanged_key_material_and_resets_expiry(
    clock: list[float],
    make_jwk: Callable[..., Any],
    other_private_key: Any,
):
    converter = CountingConverter()
    fetcher = FakeFetcher([make_jwk(kid="same"), make_jwk(kid="rotated")])
    cache = m.InMemoryKeyCache(fetcher, max_key_age=600, converter=converter)
    cache.refresh()
    first = cache.lookup("same")

    clock[0] = 1100.0
    fetcher.keys = [make_jwk(kid="same"), make_jwk(kid="rotated", key=other_private_key)]
    cache.refresh()

    assert converter.kids == ["same", "rotated", "rotated"]
    second = cache.lookup("same")
    assert second is not None and first is not None
    assert second.key is first.key
    assert second.expires_at == 1700.0


def test_failed_refresh_keeps_previous_snapshot(make_jwk: Callable[..., Any]):
    fetcher = FakeFetcher([make_jwk(kid="k1")])
    cache = m.InMemoryKeyCache(fetcher)
    cache.refresh()
    before = cache.keys()

    fetcher.error = m.PublicKeyLookupFailed(ConnectionError("down"))
    with pytest.raises(m.PublicKeyLookupFailed):
        cache.refresh()

    assert cache.keys() is before
    assert cache.lookup("k1") is not None


def test_refresh_swaps_map_instead_of_mutating(make_jwk: Callable[..., Any]):
    fetcher = FakeFetcher([make_jwk(kid="k1")])
    cache = m.InMemoryKeyCache(fetcher)
    cache.refresh()
    old_view = cache.keys()

    fetcher.keys = [make_jwk(kid="k2")]
    cache.refresh()

    assert set(old_view) == {"k1"}
    assert set(cache.keys()) == {"k2"}
    with pytest.raises(TypeError):
        old_view["k3"] = None  # type: ignore[index]


def test_unusable_published_keys_are_skipped(make_jwk: Callable[..., Any]):
    fetcher = FakeFetcher(
        [
            {"kty": "RSA", "n": "AQAB", "e": "AQAB"},  # no kid
            {"kid": "weird", "kty": "nope"},
            "not-an-object",
            make_jwk(kid="good"),
        ]
    )
    cache = m.InMemoryKeyCache(fetcher)

    cache.refresh()

    assert set(cache) == {"good"}


def test_recently_refreshed_window(clock: list[float], make_jwk: Callable[..., Any]):
    cache = m.InMemoryKeyCache(FakeFetcher([make_jwk()]), missing_key_ttl=30)
    cache.refresh()

    clock[0] = 1029.0
    assert cache.recently_refreshed() is True

    clock[0] = 1030.0
    assert cache.recently_refreshed() is False


def test_zero_missing_key_ttl_disables_negative_caching(make_jwk: Callable[..., Any]):
    cache = m.InMemoryKeyCache(FakeFetcher([make_jwk()]), missing_key_ttl=0)
    cache.refresh()

    assert cache.recently_refreshed() is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_key_age": 0},
        {"missing_key_ttl": -1},
        {"max_key_age": 10, "missing_key_ttl": 11},
    ],
)
def test_invalid_cache_options(kwargs: dict[str, Any]):
    with pytest.raises(ValueError):
        m.InMemoryKeyCache(FakeFetcher(), **kwargs)


def test_injected_gate_is_used(make_jwk: Callable[..., Any]):
    gate = m.RefreshGate()
    cache = m.InMemoryKeyCache(FakeFetcher([make_jwk(kid="k1")]), gate=gate)

    assert not cache
    assert cache.gate is gate

    cache.refresh()
    assert "k1" in cache
