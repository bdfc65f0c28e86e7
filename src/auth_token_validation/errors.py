"""Authentication errors raised by token validation.

This module defines the closed set of caller-facing failures. Every error
inherits from AuthError and carries a stable ``kind`` discriminant plus the
HTTP status a transport layer should answer with.

Kinds:
    no_authorization_provided -> 401
    bad_token                 -> 401
    public_key_not_found      -> 403
    public_key_lookup_failed  -> 503

Security Note:
    Descriptions are safe to return to clients. The wrapped cause of a
    PublicKeyLookupFailed is for server-side logs only.
"""

from __future__ import annotations

from typing import ClassVar


class AuthError(Exception):
    """Base exception for all token validation failures.

    Application code can catch this single type to handle any caller-facing
    failure. Programming contract violations are deliberately *not*
    AuthErrors.

    Attributes:
        kind: Stable discriminant naming the failure.
        status_code: HTTP status a transport layer should respond with.
        is_user_error: True when the caller (not the service) is at fault.
    """

    kind: ClassVar[str] = "auth_error"
    status_code: ClassVar[int] = 401
    is_user_error: ClassVar[bool] = True

    @property
    def description(self) -> str:
        """Human readable message, suitable for an HTTP error body."""
        return str(self.args[0]) if self.args else self.kind


class NoAuthorizationProvided(AuthError):  # noqa: N818
    """Raised when the request carries no ``Authorization: Bearer <token>``.

    This occurs when:
    - No header mapping was supplied at all
    - The authorization header is missing or empty
    - The header uses another scheme (e.g. ``Basic``) or is malformed

    Raised before any network access.
    """

    kind = "no_authorization_provided"

    def __init__(self) -> None:
        super().__init__("An authorization method wasn't provided")


class BadToken(AuthError):  # noqa: N818
    """Raised when a token is present but cannot be trusted.

    This occurs when:
    - The token is not a parseable JWS envelope
    - The signature does not match the resolved key
    - The header algorithm is not allowed for the resolved key
    - The token has expired (beyond the configured clock skew)
    """

    kind = "bad_token"


class PublicKeyNotFound(AuthError):  # noqa: N818
    """Raised when the token's ``kid`` is absent from the freshly fetched key set.

    Distinct from PublicKeyLookupFailed: the key server answered, it just
    does not publish this key.

    Attributes:
        kid: The key identifier read from the token header.
    """

    kind = "public_key_not_found"
    status_code = 403

    def __init__(self, kid: str) -> None:
        super().__init__(f'Public key "{kid}" not found')
        self.kid = kid


class PublicKeyLookupFailed(AuthError):  # noqa: N818
    """Raised when fetching the key set itself failed.

    Network errors, non-2xx responses and undecodable payloads all end up
    here. Raise it with ``from inner`` so the original traceback stays
    attached as ``__cause__``.

    Attributes:
        inner: The underlying exception.
    """

    kind = "public_key_lookup_failed"
    status_code = 503
    is_user_error = False

    def __init__(self, inner: BaseException | None = None) -> None:
        super().__init__(
            "An error occurred while looking up public keys. "
            "Check auth service configuration."
        )
        self.inner = inner
