# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Token types returned by the Token Vault.

`TokenResponse` is the wire shape of an OAuth token endpoint response.
`TokenSet` is the immutable credential handed to tools and kept in the
credential cache; its expiry drives the cache TTL.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, fields
from typing import Any

_SCOPE_SEPARATORS = re.compile(r"[,\s]+")


def parse_scopes(scope: str | None) -> list[str]:
    """Split a comma- or space-separated scope string, dropping empties."""
    if not scope:
        return []
    return [s for s in _SCOPE_SEPARATORS.split(scope) if s]


@dataclass(slots=True)
class TokenResponse:
    """OAuth 2.0 token endpoint response (RFC 6749 §5.1, RFC 8693 §2.2.1)."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: float | None = None
    scope: str | None = None
    refresh_token: str | None = None
    id_token: str | None = None
    issued_token_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenResponse:
        """Build from a decoded JSON response, ignoring unknown fields.

        Raises:
            ValueError: If ``data`` is not an object, ``access_token`` is
                missing or empty, or a field has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"token response must be an object, got {type(data).__name__}")
        if not data.get("access_token"):
            raise ValueError("token response is missing 'access_token'")
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known and value is not None}
        for key, value in values.items():
            if key != "expires_in" and not isinstance(value, str):
                raise ValueError(f"token response field {key!r} must be a string, got {type(value).__name__}")
        if "expires_in" in values:
            expires_in = values["expires_in"]
            if isinstance(expires_in, bool):
                raise ValueError("token response field 'expires_in' must be a number")
            try:
                values["expires_in"] = float(expires_in)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"token response field 'expires_in' must be a number, got {expires_in!r}") from exc
        return cls(**values)


@dataclass(frozen=True, slots=True)
class TokenSet:
    """A scoped third-party credential obtained from the Token Vault.

    Attributes:
        access_token: Token for the third-party API.
        token_type: Usually "Bearer".
        expires_in: Lifetime in seconds at the time of issue, if known.
        expires_at: Absolute expiry (epoch seconds), if known.
        scope: Granted scope string as returned by the server.
        refresh_token: Federated refresh token, when the server returns one.
        id_token: Federated ID token, when the server returns one.
    """

    access_token: str
    token_type: str = "Bearer"
    expires_in: float | None = None
    expires_at: float | None = None
    scope: str | None = None
    refresh_token: str | None = None
    id_token: str | None = None

    @property
    def scopes(self) -> list[str]:
        return parse_scopes(self.scope)

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (time.time() if now is None else now) >= self.expires_at

    def __repr__(self) -> str:
        # Keep tokens out of logs and tracebacks
        return f"TokenSet(token_type={self.token_type!r}, expires_at={self.expires_at!r}, scope={self.scope!r})"


def token_set_from_response(response: TokenResponse, *, now: float | None = None) -> TokenSet:
    """Convert a token response into a `TokenSet` with absolute expiry."""
    issued_at = time.time() if now is None else now
    expires_at = issued_at + response.expires_in if response.expires_in is not None else None
    return TokenSet(
        access_token=response.access_token,
        token_type=response.token_type,
        expires_in=response.expires_in,
        expires_at=expires_at,
        scope=response.scope,
        refresh_token=response.refresh_token,
        id_token=response.id_token,
    )


__all__ = ["TokenResponse", "TokenSet", "parse_scopes", "token_set_from_response"]
