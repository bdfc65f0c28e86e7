"""
Key set fetching and key material conversion.

``JWKSFetcher`` performs the network round-trip to an issuer's key set;
``jwk_to_key`` turns one published JWK into a verification-ready key.
"""

from .convert import allowed_algorithms, jwk_to_key
from .jwks import JWKSFetcher

__all__ = ["JWKSFetcher", "allowed_algorithms", "jwk_to_key"]
