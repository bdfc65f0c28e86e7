"""Token extraction from request headers.

BearerExtractor pulls the raw JWT out of an ``authorization`` header of the
form ``Bearer <token>``. Anything else is rejected before any key lookup or
network access happens.

Works with a plain ``dict`` (key ``authorization``) as well as Flask's
``request.headers``, whose lookups are case-insensitive on header names.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from .errors import NoAuthorizationProvided

if TYPE_CHECKING:
    from .protocols import Headers

_BEARER: Final[re.Pattern[str]] = re.compile(r"Bearer (.+)")


class BearerExtractor:
    """Extracts a JWT from an ``authorization: Bearer <token>`` header.

    The scheme keyword is case-sensitive and must be followed by exactly one
    space; everything after it is the token.

    Example:
        ```python
        extractor = BearerExtractor()
        token = extractor.extract({"authorization": "Bearer abc.def.ghi"})
        ```
    """

    def extract(self, headers: Headers | None) -> str:
        """Extract the token from ``headers``.

        Raises:
            NoAuthorizationProvided: If headers are missing, the header is
                absent or empty, or it is not a Bearer credential.
        """
        if headers is None:
            raise NoAuthorizationProvided()

        auth_header = headers.get("authorization")
        if not auth_header:
            raise NoAuthorizationProvided()

        match = _BEARER.fullmatch(auth_header)
        if match is None:
            raise NoAuthorizationProvided()

        return match.group(1)
