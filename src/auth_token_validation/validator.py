"""Bearer token validator.

AuthTokenValidator is the entry point: it pulls the token out of the request
headers, reads the unverified ``kid``, resolves the signing key from the key
cache (refreshing it from the issuer when needed), verifies the token, and
wraps the verified claims in an AuthToken.

Per call: START -> EXTRACTED -> DECODED -> KEY_RESOLVED -> VERIFIED | FAILED.
Nothing is retained across calls except the shared key cache.
"""

from __future__ import annotations

import json
import logging
from numbers import Real
from typing import TYPE_CHECKING, Any, Final

import jwt
import requests
from jwt.utils import base64url_decode

from .cache_stores import DEFAULT_MAX_KEY_AGE, DEFAULT_MISSING_KEY_TTL, CachedKey, InMemoryKeyCache
from .errors import BadToken, PublicKeyNotFound
from .extractors import BearerExtractor
from .key_providers import JWKSFetcher
from .key_providers.jwks import DEFAULT_TIMEOUT
from .token import AuthToken
from .verifier import DEFAULT_MAX_CLOCK_SKEW, SignatureVerifier, VerifyOptions

if TYPE_CHECKING:
    from .config import ValidatorSettings
    from .protocols import Extractor, Headers, KeyCache, TokenVerifier

logger = logging.getLogger(__name__)

DEFAULT_ISSUER: Final[str] = "https://auth.brightspace.com/core"


def _non_negative(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if value < 0:
        raise TypeError(f"{name} cannot be negative, got {value}")
    return value


def _has_non_string_kid(signature: Any) -> bool:
    if not isinstance(signature, str):
        return False
    try:
        header = json.loads(base64url_decode(signature.split(".", 1)[0]))
    except ValueError:
        return False
    return isinstance(header, dict) and "kid" in header and not isinstance(header["kid"], str)


class AuthTokenValidator:
    """Validates bearer tokens against an issuer's published keys.

    Thread Safety:
        Safe to call concurrently from many request threads. The only shared
        mutable state is the key cache, whose refreshes are single-flight.

    Example:
        ```python
        validator = AuthTokenValidator(issuer="https://auth.example.com/core")

        try:
            token = validator.from_headers(request.headers)
        except AuthError as e:
            abort(e.status_code, description=e.description)

        user_id = token["sub"]
        ```

    Attributes:
        _cache: Key cache consulted (and refreshed) for every token.
        _verifier: Signature/expiry checker.
        _extractor: Pulls the raw token out of request headers.
    """

    def __init__(
        self,
        issuer: str = DEFAULT_ISSUER,
        *,
        max_key_age: float = DEFAULT_MAX_KEY_AGE,
        max_clock_skew: float = DEFAULT_MAX_CLOCK_SKEW,
        missing_key_ttl: float = DEFAULT_MISSING_KEY_TTL,
        use_discovery: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        audience: str | None = None,
        session: requests.Session | None = None,
        cache: KeyCache | None = None,
        verifier: TokenVerifier | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        """Initialize the validator.

        Args:
            issuer: Issuer base URL. Trailing slashes are stripped.
            max_key_age: Seconds a fetched key stays usable (default 5 hours).
            max_clock_skew: Leeway in seconds for the ``exp`` check.
            missing_key_ttl: Seconds after a refresh during which an unknown
                kid is rejected without refetching. 0 refetches on every miss.
            use_discovery: Locate the key set via OpenID discovery.
            timeout: Per-request timeout for key set fetches.
            audience: Expected ``aud``; not checked when None.
            session: HTTP session for key set fetches.
            cache: Key cache to use instead of a private one. Pass the same
                instance to several validators to share keys between them.
            verifier: Token verifier to use instead of SignatureVerifier.
            extractor: Header extractor to use instead of BearerExtractor.

        Raises:
            TypeError: If issuer is not a string, or a numeric option is not
                a non-negative number.
            ValueError: If max_key_age is 0 or missing_key_ttl exceeds it.
        """
        if not isinstance(issuer, str):
            raise TypeError(f"issuer must be a string, got {type(issuer).__name__}")

        self._issuer = issuer.rstrip("/")
        self._max_key_age = _non_negative("max_key_age", max_key_age)
        self._max_clock_skew = _non_negative("max_clock_skew", max_clock_skew)
        missing_key_ttl = _non_negative("missing_key_ttl", missing_key_ttl)

        if cache is None:
            cache = InMemoryKeyCache(
                JWKSFetcher(
                    self._issuer,
                    use_discovery=use_discovery,
                    timeout=timeout,
                    session=session,
                ),
                max_key_age=self._max_key_age,
                missing_key_ttl=missing_key_ttl,
            )
        if verifier is None:
            verifier = SignatureVerifier(
                VerifyOptions(max_clock_skew=self._max_clock_skew, audience=audience)
            )

        self._cache: KeyCache = cache
        self._verifier: TokenVerifier = verifier
        self._extractor: Extractor = extractor if extractor is not None else BearerExtractor()

    @classmethod
    def from_settings(
        cls, settings: ValidatorSettings, **kwargs: Any
    ) -> AuthTokenValidator:
        """Build a validator from environment-derived settings."""
        return cls(
            settings.issuer,
            max_key_age=settings.max_key_age,
            max_clock_skew=settings.max_clock_skew,
            missing_key_ttl=settings.missing_key_ttl,
            use_discovery=settings.use_discovery,
            timeout=settings.fetch_timeout,
            audience=settings.audience,
            **kwargs,
        )

    @property
    def issuer(self) -> str:
        return self._issuer

    @property
    def max_key_age(self) -> float:
        return self._max_key_age

    @property
    def max_clock_skew(self) -> float:
        return self._max_clock_skew

    @property
    def cache(self) -> KeyCache:
        return self._cache

    def from_headers(self, headers: Headers | None) -> AuthToken:
        """Validate the bearer token carried in ``headers``.

        Raises:
            NoAuthorizationProvided: No ``Bearer <token>`` header.
            BadToken: Malformed token, bad signature or expired.
            PublicKeyNotFound: The issuer does not publish the token's kid.
            PublicKeyLookupFailed: The key set could not be fetched.
        """
        return self.from_signature(self._extractor.extract(headers))

    validate = from_headers

    def from_signature(self, signature: str) -> AuthToken:
        """Validate a raw token string. Same errors as ``from_headers``."""
        key = self._get_public_key(signature)
        claims = self._verifier.verify(signature, key)
        return AuthToken(claims, signature)

    def validate_configuration(self) -> bool:
        """Refresh the key set once and report success.

        Meant for health checks; it does not look at any token.

        Raises:
            PublicKeyLookupFailed: If the key set could not be fetched.
        """
        self._cache.refresh()
        return True

    def _get_public_key(self, signature: str) -> CachedKey:
        try:
            header = jwt.get_unverified_header(signature)
        except jwt.InvalidTokenError as e:
            if _has_non_string_kid(signature):
                raise TypeError("Token header must carry a string 'kid'") from e
            raise BadToken("Not a valid signature") from e

        kid = header.get("kid")
        if not isinstance(kid, str):
            raise TypeError("Token header must carry a string 'kid'")

        key = self._cache.lookup(kid)
        if key is not None:
            logger.debug("Public key %s served from cache", kid)
            return key

        if not self._cache.recently_refreshed():
            self._cache.refresh()

        # Another thread may have published the kid since the first lookup.
        key = self._cache.lookup(kid)
        if key is not None:
            return key

        logger.info("Public key %s not published by %s", kid, self._issuer)
        raise PublicKeyNotFound(kid)
