"""JWT signature and expiry verification using PyJWT.

This module checks a raw token against a key that has already been resolved
from the key cache. It knows nothing about key sets or HTTP:

- The signature is checked only with the algorithms recorded for the key,
  never with whatever the (untrusted) header declares
- ``exp`` is enforced, with the configured clock skew as leeway
- ``nbf`` is ignored, so tokens minted by an issuer whose clock runs slightly
  ahead are accepted while expired tokens are still rejected
- PyJWT exceptions are mapped to ``BadToken``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import jwt

from .errors import BadToken

if TYPE_CHECKING:
    from .cache_stores import CachedKey
    from .protocols import Claims

DEFAULT_MAX_CLOCK_SKEW: Final[int] = 5 * 60
"""Default clock skew tolerance in seconds."""


@dataclass(frozen=True, slots=True)
class VerifyOptions:
    """Configuration for claim validation.

    Attributes:
        max_clock_skew: Leeway in seconds applied to the ``exp`` check.
        audience: Expected ``aud`` claim. If None, audience is not checked.
    """

    max_clock_skew: float = DEFAULT_MAX_CLOCK_SKEW
    audience: str | None = None


class SignatureVerifier:
    """Verifies a token against one resolved key.

    Thread Safety:
        Stateless apart from frozen options; safe to share.

    Example:
        ```python
        verifier = SignatureVerifier(VerifyOptions(max_clock_skew=60))
        claims = verifier.verify(raw_token, cache.lookup(kid))
        ```
    """

    def __init__(self, options: VerifyOptions | None = None) -> None:
        self._opt = options or VerifyOptions()

    @property
    def options(self) -> VerifyOptions:
        return self._opt

    def verify(self, token: str, key: CachedKey) -> Claims:
        """Verify ``token`` with ``key`` and return its claims.

        Raises:
            BadToken: Signature mismatch, disallowed algorithm, expired token,
                audience mismatch, or a malformed token.
        """
        try:
            return jwt.decode(
                token,
                key.key,
                algorithms=list(key.algorithms),
                audience=self._opt.audience,
                leeway=self._opt.max_clock_skew,
                options={
                    "verify_nbf": False,
                    "verify_iat": False,
                    "verify_aud": self._opt.audience is not None,
                },
            )
        except jwt.InvalidTokenError as e:
            raise BadToken(str(e)) from e
