"""Verified token value returned by the validator."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any


class AuthToken(Mapping[str, Any]):
    """Read-only claims of a verified token, plus the raw token it came from.

    Only the validator constructs these, after signature and expiry checks
    pass, so holders can trust the contents. Compares equal to any mapping
    with the same claims.

    Attributes:
        source: The exact token string that was verified.
    """

    __slots__ = ("_claims", "_source")

    def __init__(self, claims: Mapping[str, Any], source: str) -> None:
        self._claims = MappingProxyType(dict(claims))
        self._source = source

    @property
    def source(self) -> str:
        return self._source

    @property
    def claims(self) -> Mapping[str, Any]:
        return self._claims

    @property
    def subject(self) -> str | None:
        return self._claims.get("sub")

    def __getitem__(self, name: str) -> Any:
        return self._claims[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def __repr__(self) -> str:
        return f"AuthToken({dict(self._claims)!r})"
