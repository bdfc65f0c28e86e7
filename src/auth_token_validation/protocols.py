"""Protocol definitions for the token validation package.

This module defines structural interfaces using Protocol (PEP 544) for:
- Key set fetching
- Key material conversion
- Key caching
- Token verification
- Credential extraction

Using protocols allows for duck-typing and easier testing/mocking without
requiring explicit inheritance. Any class that implements the required methods
satisfies the protocol.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .cache_stores import CachedKey

# ============================================================================
# Type Aliases
# ============================================================================

type Claims = Mapping[str, Any]
"""Represents the decoded JWT payload as an immutable mapping."""

type Headers = Mapping[str, str]
"""Request headers; the relevant entry is ``authorization``."""

type ViewFunc = Callable[..., Any]
"""Type alias for Flask view functions (callable that takes any args and returns any)."""


# ============================================================================
# Core Protocols
# ============================================================================


class KeySetFetcher(Protocol):
    """Protocol for retrieving an issuer's published key set.

    One call is one network round-trip (two with OpenID discovery). No
    caching is expected from implementers.
    """

    def fetch(self) -> Mapping[str, Any]:
        """Return the key set as ``{"keys": [ {"kid": ..., ...}, ... ]}``.

        Raises:
            PublicKeyLookupFailed: Network, HTTP status or payload failure.
        """
        ...


class KeyConverter(Protocol):
    """Protocol for turning one published JWK into a verification key."""

    def __call__(self, jwk: Mapping[str, Any]) -> tuple[Any, tuple[str, ...]]:
        """Return ``(key, allowed_algorithms)`` for ``jwk``.

        Raises:
            ValueError or jwt.PyJWTError: If the entry is structurally invalid.
        """
        ...


class KeyCache(Protocol):
    """Protocol for the kid -> key cache consulted by the validator.

    ``lookup`` must never block or perform I/O; ``refresh`` is the only
    operation allowed to touch the network.
    """

    def lookup(self, kid: str) -> CachedKey | None:
        """Return a fresh entry for ``kid``, or None if absent or expired."""
        ...

    def recently_refreshed(self) -> bool:
        """True if an unknown kid should be reported without another refresh."""
        ...

    def refresh(self) -> None:
        """Replace the cache contents from the key set.

        Raises:
            PublicKeyLookupFailed: If the key set could not be fetched.
        """
        ...


class TokenVerifier(Protocol):
    """Protocol for checking a token against an already resolved key."""

    def verify(self, token: str, key: CachedKey) -> Claims:
        """Verify signature and expiry and return the decoded claims.

        Raises:
            BadToken: Signature, algorithm or expiry check failed.
        """
        ...


class Extractor(Protocol):
    """Protocol for pulling the raw token out of a credential carrier."""

    def extract(self, headers: Headers | None) -> str:
        """Return the raw token string.

        Raises:
            NoAuthorizationProvided: No usable credential in ``headers``.
        """
        ...
