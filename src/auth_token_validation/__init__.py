"""
Bearer token validation against an issuer's published signing keys.

High-level flow (per request)
-----------------------------
1. `BearerExtractor` pulls the raw JWT from `authorization: Bearer <token>`.
2. `AuthTokenValidator` reads the unverified header to get `kid`.
3. `InMemoryKeyCache.lookup(kid)` returns a cached key if it has not expired.
4. On a miss, `InMemoryKeyCache.refresh()` fetches the issuer's key set
   through `JWKSFetcher`. Concurrent refreshes share a single fetch
   (`RefreshGate`).
5. `SignatureVerifier` checks the signature with the key's own algorithms and
   enforces `exp` (not `nbf`).
6. On success an immutable `AuthToken` (claims + `source`) is returned.

Security notes
--------------
- Never trust claims until signature verification succeeds.
- The header's `alg` is never used to pick the algorithm; the key decides.
- A key is never used past its expiry and never invented on fetch failure.
- "Key not published" (403) and "key server unreachable" (503) are distinct.

Example usage
-------------

.. code-block:: python

    from auth_token_validation import AuthExtension, AuthTokenValidator, current_token

    validator = AuthTokenValidator(
        issuer="https://auth.example.com/core",
        max_key_age=5 * 60 * 60,
    )

    auth = AuthExtension(validator)
    auth.init_app(app)

    @app.route("/protected")
    @auth.require()
    def protected_route():
        return {"sub": current_token()["sub"]}
"""

# Cache stores
from .cache_stores import CachedKey, InMemoryKeyCache

# Configuration
from .config import ValidatorSettings

# Errors
from .errors import (
    AuthError,
    BadToken,
    NoAuthorizationProvided,
    PublicKeyLookupFailed,
    PublicKeyNotFound,
)

# Extractors
from .extractors import BearerExtractor

# Flask extension
from .flask_extension import AuthExtension, current_token

# Key providers
from .key_providers import JWKSFetcher, allowed_algorithms, jwk_to_key

# Protocols
from .protocols import (
    Claims,
    Extractor,
    Headers,
    KeyCache,
    KeyConverter,
    KeySetFetcher,
    TokenVerifier,
    ViewFunc,
)

# Refresh gate
from .refresh_gate import RefreshGate

# Verified token
from .token import AuthToken

# Validator
from .validator import DEFAULT_ISSUER, AuthTokenValidator

# Verifier
from .verifier import SignatureVerifier, VerifyOptions

__all__ = [
    # Errors
    "AuthError",
    "BadToken",
    "NoAuthorizationProvided",
    "PublicKeyLookupFailed",
    "PublicKeyNotFound",
    # Protocols
    "Claims",
    "Extractor",
    "Headers",
    "KeyCache",
    "KeyConverter",
    "KeySetFetcher",
    "TokenVerifier",
    "ViewFunc",
    # Extractors
    "BearerExtractor",
    # Key providers
    "JWKSFetcher",
    "allowed_algorithms",
    "jwk_to_key",
    # Refresh gate
    "RefreshGate",
    # Cache stores
    "CachedKey",
    "InMemoryKeyCache",
    # Verifier
    "SignatureVerifier",
    "VerifyOptions",
    # Verified token
    "AuthToken",
    # Validator
    "DEFAULT_ISSUER",
    "AuthTokenValidator",
    # Configuration
    "ValidatorSettings",
    # Flask extension
    "AuthExtension",
    "current_token",
]
