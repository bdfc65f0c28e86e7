"""
JWKS key set fetcher.

Performs the network round-trip(s) that return an issuer's currently
published signing keys. No caching happens here; see ``cache_stores``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Final

import requests

from ..errors import PublicKeyLookupFailed

logger = logging.getLogger(__name__)

JWKS_PATH: Final[str] = "/.well-known/jwks"
DISCOVERY_PATH: Final[str] = "/.well-known/openid-configuration"
DEFAULT_TIMEOUT: Final[float] = 10.0


class JWKSFetcher:
    """
    Fetches the published key set of one issuer.

    Resolution Strategy
    -------------------
    1) Direct (default)
        GET ``{issuer}/.well-known/jwks``

    2) Discovery (``use_discovery=True``)
        GET ``{issuer}/.well-known/openid-configuration``,
        read its ``jwks_uri``, then GET that.

    Every failure along the way (connection error, timeout, non-2xx status,
    body that is not JSON, discovery document without ``jwks_uri``, key set
    without a ``keys`` list) surfaces as ``PublicKeyLookupFailed`` chained to
    the original exception.

    Parameters
    ----------
    issuer : str
        Issuer base URL, without trailing slash.

    use_discovery : bool
        Resolve the JWKS location through the OpenID discovery document.

    timeout : float
        Per-request timeout in seconds. This is the only bound on how long a
        refresh can hold the single in-flight slot.

    session : requests.Session | None
        HTTP session to use. A private one is created when omitted.

    Example
    -------
    fetcher = JWKSFetcher("https://auth.example.com/core")
    jwks = fetcher.fetch()   # {"keys": [...]}
    """

    def __init__(
        self,
        issuer: str,
        *,
        use_discovery: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._issuer = issuer
        self._use_discovery = use_discovery
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def issuer(self) -> str:
        return self._issuer

    def fetch(self) -> Mapping[str, Any]:
        try:
            jwks_uri = self._discover() if self._use_discovery else self._issuer + JWKS_PATH
            jwks = self._get_json(jwks_uri)
            if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
                raise ValueError(f"Key set at {jwks_uri} has no 'keys' list")
        except (requests.RequestException, ValueError) as e:
            logger.warning("Public key lookup failed for issuer %s: %s", self._issuer, e)
            raise PublicKeyLookupFailed(e) from e

        return jwks

    def _discover(self) -> str:
        document = self._get_json(self._issuer + DISCOVERY_PATH)
        jwks_uri = document.get("jwks_uri") if isinstance(document, dict) else None
        if not isinstance(jwks_uri, str) or not jwks_uri:
            raise ValueError("OpenID discovery document is missing 'jwks_uri'")
        return jwks_uri

    def _get_json(self, url: str) -> Any:
        response = self._session.get(url, timeout=self._timeout)
        response.raise_for_status()
        return response.json()
