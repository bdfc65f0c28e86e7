"""Flask extension for bearer token authentication.

This module connects AuthTokenValidator to Flask routes with a decorator.

Key Components:
- AuthExtension: Decorator provider for protecting Flask routes
- current_token: Accessor for the verified token of the current request

Request Flow:
1. Read ``request.headers``
2. Validate the bearer token (extraction, key resolution, verification)
3. Store the AuthToken in ``flask.g.auth_token`` for the view
4. Convert AuthError to the matching HTTP response (401/403/503)

Contract violations (non-AuthError exceptions) are not converted; Flask
reports them as 500.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, abort, g, request

from .errors import AuthError, PublicKeyLookupFailed

if TYPE_CHECKING:
    from .protocols import ViewFunc
    from .token import AuthToken
    from .validator import AuthTokenValidator

logger = logging.getLogger(__name__)

_EXT_KEY: Final[str] = "auth_token_validation"
"""Flask extensions registry key for AuthExtension."""


class AuthExtension:
    """
    Flask decorator glue for bearer token validation.

    Responsibilities:
    - Validate the request's bearer token (AuthTokenValidator)
    - Store the verified token in `flask.g.auth_token`
    - Convert domain errors to HTTP responses (abort)

    Pattern:
        auth = AuthExtension(validator)
        auth.init_app(app)

    Usage:
        @app.get("/me")
        @auth.require()
        def me():
            return {"sub": current_token()["sub"]}
    """

    def __init__(self, validator: AuthTokenValidator) -> None:
        self._validator = validator

    @property
    def validator(self) -> AuthTokenValidator:
        return self._validator

    def init_app(self, app: Flask, *, validator: AuthTokenValidator | None = None) -> None:
        """Register the extension on ``app``.

        Args:
            app (Flask): The Flask application instance.
            validator (AuthTokenValidator | None, optional): Replaces the
                validator given at construction. Defaults to None.
        """
        if validator is not None:
            self._validator = validator

        app.extensions[_EXT_KEY] = self

    def require(self):
        """Decorator to protect Flask routes with bearer token validation.

        Error mapping:
        - ``NoAuthorizationProvided`` -> HTTP 401
        - ``BadToken``                -> HTTP 401
        - ``PublicKeyNotFound``       -> HTTP 403
        - ``PublicKeyLookupFailed``   -> HTTP 503

        Side Effects:
                - Writes the AuthToken to ``flask.g.auth_token`` before calling the view.
                - May terminate request handling early via ``flask.abort``.
        """

        def decorator(view: ViewFunc) -> ViewFunc:
            @wraps(view)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    g.auth_token = self._validator.from_headers(request.headers)
                except AuthError as e:
                    if not e.is_user_error:
                        logger.error("Token validation unavailable: %s", e, exc_info=e)
                    abort(e.status_code, description=e.description)

                return view(*args, **kwargs)

            return wrapper

        return decorator

    def healthcheck(self) -> tuple[dict[str, Any], int]:
        """Check that the issuer's key set can be fetched.

        Returns:
            ``({"status": "ok"}, 200)`` or ``({"status": "unavailable", ...}, 503)``.
        """
        try:
            self._validator.validate_configuration()
        except PublicKeyLookupFailed as e:
            return {"status": "unavailable", "message": e.description}, e.status_code
        return {"status": "ok"}, 200


def current_token() -> AuthToken:
    """Return the verified token of the current request.

    Raises:
        RuntimeError: If the view is not protected by ``AuthExtension.require``.
    """
    token = g.get("auth_token")
    if token is None:
        raise RuntimeError("No verified token on this request; use AuthExtension.require()")
    return token
