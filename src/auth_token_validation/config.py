"""Environment-driven validator settings.

Reads ``AUTH_*`` variables (after loading a ``.env`` file, if present) into
an immutable ValidatorSettings, which ``AuthTokenValidator.from_settings``
turns into a validator.

Variables:
    AUTH_ISSUER            issuer base URL
    AUTH_MAX_KEY_AGE       seconds a fetched key stays usable
    AUTH_MAX_CLOCK_SKEW    leeway in seconds for the exp check
    AUTH_MISSING_KEY_TTL   seconds unknown kids are rejected without refetch
    AUTH_USE_DISCOVERY     "true"/"1"/"yes" to use OpenID discovery
    AUTH_AUDIENCE          expected aud claim (unset: not checked)
    AUTH_FETCH_TIMEOUT     per-request key set fetch timeout in seconds
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from dotenv import load_dotenv

from .cache_stores import DEFAULT_MAX_KEY_AGE, DEFAULT_MISSING_KEY_TTL
from .key_providers.jwks import DEFAULT_TIMEOUT
from .validator import DEFAULT_ISSUER
from .verifier import DEFAULT_MAX_CLOCK_SKEW

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class ValidatorSettings:
    """Constructor-time configuration of an AuthTokenValidator."""

    issuer: str = DEFAULT_ISSUER
    max_key_age: float = DEFAULT_MAX_KEY_AGE
    max_clock_skew: float = DEFAULT_MAX_CLOCK_SKEW
    missing_key_ttl: float = DEFAULT_MISSING_KEY_TTL
    use_discovery: bool = False
    audience: str | None = None
    fetch_timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ValidatorSettings:
        """Build settings from ``environ`` or, by default, the process environment.

        When reading the process environment a ``.env`` file is loaded first;
        variables already set win over the file.

        Raises:
            ValueError: If a numeric variable is not a number.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        return cls(
            issuer=environ.get("AUTH_ISSUER", DEFAULT_ISSUER),
            max_key_age=_number(environ, "AUTH_MAX_KEY_AGE", DEFAULT_MAX_KEY_AGE),
            max_clock_skew=_number(environ, "AUTH_MAX_CLOCK_SKEW", DEFAULT_MAX_CLOCK_SKEW),
            missing_key_ttl=_number(environ, "AUTH_MISSING_KEY_TTL", DEFAULT_MISSING_KEY_TTL),
            use_discovery=environ.get("AUTH_USE_DISCOVERY", "").strip().lower() in _TRUE_VALUES,
            audience=environ.get("AUTH_AUDIENCE") or None,
            fetch_timeout=_number(environ, "AUTH_FETCH_TIMEOUT", DEFAULT_TIMEOUT),
        )


def _number(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
