"""In-process cache of issuer signing keys.

This module provides InMemoryKeyCache, the TTL-keyed mapping from ``kid`` to
verification key that sits between the validator and the key set fetcher.

Behavior:
- Lookups are lock-free reads against the current snapshot
- A refresh fetches the whole key set and swaps in a new snapshot in one
  assignment; readers see either the old map or the new one, never a mix
- Overlapping refreshes share one fetch (see ``refresh_gate``)
- A failed refresh leaves the previous snapshot untouched
- Unknown ``kid`` values are answered from the snapshot for a short window
  after a refresh instead of triggering another fetch (negative caching)

Security Note:
    Entries are only ever built from a successfully fetched key set and are
    never used past ``expires_at``. Stale keys are not resurrected on failure;
    they simply stay until their own expiry.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from jwt.exceptions import PyJWTError

from .key_providers import jwk_to_key
from .refresh_gate import RefreshGate

if TYPE_CHECKING:
    from .protocols import KeyConverter, KeySetFetcher

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEY_AGE: Final[int] = 5 * 60 * 60
"""Default lifetime of a cached key in seconds (5 hours)."""

DEFAULT_MISSING_KEY_TTL: Final[int] = 30
"""Default window after a refresh during which unknown kids are not refetched."""


@dataclass(frozen=True, slots=True)
class CachedKey:
    """One verification key, immutable once built.

    Attributes:
        key: Verification-ready public key object.
        algorithms: Signature algorithms this key may verify (non-empty).
        expires_at: Unix timestamp after which the entry must not be used.
        jwk: The published JWK the key was converted from.
    """

    key: Any
    algorithms: tuple[str, ...]
    expires_at: float
    jwk: Mapping[str, Any] = field(repr=False, compare=False)

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True, slots=True)
class _Snapshot:
    keys: Mapping[str, CachedKey]
    refreshed_at: float | None


_EMPTY: Final[_Snapshot] = _Snapshot(keys=MappingProxyType({}), refreshed_at=None)


class InMemoryKeyCache:
    """TTL cache of an issuer's signing keys with single-flight refresh.

    Each instance owns its own map; validators share a cache only when the
    same instance is passed to both.

    Example:
        ```python
        cache = InMemoryKeyCache(JWKSFetcher("https://auth.example.com"))

        entry = cache.lookup("key-id-123")   # CachedKey or None
        if entry is None:
            cache.refresh()                  # at most one fetch at a time
            entry = cache.lookup("key-id-123")
        ```

    Attributes:
        _fetcher: Source of the published key set.
        _convert: JWK -> (key, algorithms) converter.
        _max_key_age: Seconds each entry stays valid after a refresh.
        _missing_key_ttl: Seconds after a refresh during which misses are final.
        _gate: Single-flight coordinator for refreshes.
        _snapshot: Current immutable snapshot; replaced, never mutated.
    """

    def __init__(
        self,
        fetcher: KeySetFetcher,
        *,
        max_key_age: float = DEFAULT_MAX_KEY_AGE,
        missing_key_ttl: float = DEFAULT_MISSING_KEY_TTL,
        converter: KeyConverter | Callable[..., Any] = jwk_to_key,
        gate: RefreshGate | None = None,
    ) -> None:
        """Initialize an empty cache.

        Args:
            fetcher: Object whose ``fetch()`` returns ``{"keys": [...]}``.
            max_key_age: Lifetime of every entry, counted from the refresh
                that (re)published it.
            missing_key_ttl: Window after a refresh during which an unknown
                kid is reported as missing without another fetch. 0 disables.
            converter: Callable turning one JWK into ``(key, algorithms)``.
            gate: Single-flight gate. A private one is created when omitted.

        Raises:
            ValueError: If max_key_age is not positive, or missing_key_ttl is
                negative or longer than max_key_age.
        """
        if max_key_age <= 0:
            raise ValueError(f"max_key_age must be positive, got {max_key_age}")
        if missing_key_ttl < 0:
            raise ValueError(f"missing_key_ttl cannot be negative, got {missing_key_ttl}")
        if missing_key_ttl > max_key_age:
            raise ValueError("missing_key_ttl cannot exceed max_key_age")

        self._fetcher = fetcher
        self._convert = converter
        self._max_key_age = max_key_age
        self._missing_key_ttl = missing_key_ttl
        self._gate = gate if gate is not None else RefreshGate()
        self._snapshot: _Snapshot = _EMPTY

    @property
    def gate(self) -> RefreshGate:
        return self._gate

    @property
    def max_key_age(self) -> float:
        return self._max_key_age

    def lookup(self, kid: str) -> CachedKey | None:
        """Return the entry for ``kid`` if present and unexpired, else None."""
        entry = self._snapshot.keys.get(kid)
        if entry is None:
            return None

        if not entry.is_fresh(time.time()):
            logger.debug("Cached key %s expired", kid)
            return None

        return entry

    def recently_refreshed(self) -> bool:
        """True while the current snapshot is inside the negative-cache window."""
        refreshed_at = self._snapshot.refreshed_at
        if refreshed_at is None or self._missing_key_ttl == 0:
            return False
        return time.time() < refreshed_at + self._missing_key_ttl

    def refresh(self) -> None:
        """Fetch the key set and replace the cache contents.

        Overlapping calls share a single fetch and all observe its outcome.

        Raises:
            PublicKeyLookupFailed: If the fetch failed. The cache is unchanged.
        """
        self._gate.run(self._reload)

    def keys(self) -> Mapping[str, CachedKey]:
        """Read-only view of the current snapshot, including expired entries."""
        return self._snapshot.keys

    def __contains__(self, kid: object) -> bool:
        return kid in self._snapshot.keys

    def __len__(self) -> int:
        return len(self._snapshot.keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self._snapshot.keys)

    def _reload(self) -> None:
        jwks = self._fetcher.fetch()
        previous = self._snapshot
        now = time.time()

        current = self._build(jwks["keys"], previous.keys, expires_at=now + self._max_key_age)

        # Single assignment: readers see the old map or the new one.
        self._snapshot = _Snapshot(keys=MappingProxyType(current), refreshed_at=now)
        logger.info("Public keys refreshed: %d key(s) cached", len(current))

    def _build(
        self,
        published: list[Any],
        known: Mapping[str, CachedKey],
        *,
        expires_at: float,
    ) -> dict[str, CachedKey]:
        current: dict[str, CachedKey] = {}

        for jwk in published:
            kid = jwk.get("kid") if isinstance(jwk, dict) else None
            if not isinstance(kid, str):
                logger.warning("Skipping published key without a string 'kid'")
                continue

            previous = known.get(kid)
            if previous is not None and previous.jwk == jwk:
                key, algorithms = previous.key, previous.algorithms
            else:
                try:
                    key, algorithms = self._convert(jwk)
                except (PyJWTError, ValueError) as e:
                    logger.warning("Skipping unusable published key %s: %s", kid, e)
                    continue

            current[kid] = CachedKey(
                key=key,
                algorithms=algorithms,
                expires_at=expires_at,
                jwk=MappingProxyType(dict(jwk)),
            )

        return current
