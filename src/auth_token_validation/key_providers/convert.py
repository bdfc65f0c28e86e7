"""
Conversion of published JWKs into verification-ready keys.

Thin wrapper around PyJWT's ``PyJWK``: the cryptographic parsing lives there,
this module only decides which signature algorithms a key may be used with.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from jwt import PyJWK

_RSA_ALGORITHMS: Final[tuple[str, ...]] = (
    "RS256",
    "RS384",
    "RS512",
    "PS256",
    "PS384",
    "PS512",
)

_EC_ALGORITHMS_BY_CURVE: Final[dict[str, tuple[str, ...]]] = {
    "P-256": ("ES256",),
    "P-384": ("ES384",),
    "P-521": ("ES512",),
    "secp256k1": ("ES256K",),
}

_HMAC_ALGORITHMS: Final[tuple[str, ...]] = ("HS256", "HS384", "HS512")


def allowed_algorithms(jwk: Mapping[str, Any]) -> tuple[str, ...]:
    """Return the signature algorithms a JWK may verify, most specific first.

    An explicit ``alg`` on the key wins. Otherwise the key type (and curve
    for EC keys) decides.

    Raises:
        ValueError: If no algorithm can be derived for the key.
    """
    alg = jwk.get("alg")
    if isinstance(alg, str) and alg:
        return (alg,)

    kty = jwk.get("kty")
    if kty == "RSA":
        return _RSA_ALGORITHMS
    if kty == "EC":
        algorithms = _EC_ALGORITHMS_BY_CURVE.get(jwk.get("crv", ""))
        if algorithms:
            return algorithms
    if kty == "OKP":
        return ("EdDSA",)
    if kty == "oct":
        return _HMAC_ALGORITHMS

    raise ValueError(f"No signature algorithm known for key type {kty!r}")


def jwk_to_key(jwk: Mapping[str, Any]) -> tuple[Any, tuple[str, ...]]:
    """Convert one key set entry into ``(key, allowed_algorithms)``.

    Raises:
        jwt.PyJWTError: If PyJWT cannot build a key from the entry.
        ValueError: If no algorithm can be derived for the key.
    """
    algorithms = allowed_algorithms(jwk)
    key = PyJWK.from_dict(dict(jwk), algorithm=algorithms[0])
    return key.key, algorithms
