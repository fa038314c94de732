# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Test helpers shared across modules."""

from __future__ import annotations

import time

DOMAIN = "tenant.us.auth0.com"
TOKEN_URL = f"https://{DOMAIN}/oauth/token"


class FakeClock:
    """Controllable clock for testing time-dependent logic."""

    def __init__(self, now: float | None = None) -> None:
        self._now = now if now is not None else time.time()

    def __call__(self) -> float:
        return self._now

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


def token_payload(
    access_token: str = "google-at",
    *,
    scope: str | None = "calendar.freebusy",
    expires_in: int | None = 3600,
) -> dict:
    """Token Vault exchange response body."""
    payload = {
        "access_token": access_token,
        "token_type": "Bearer",
        "issued_token_type": "http://auth0.com/oauth/token-type/federated-connection-access-token",
    }
    if scope is not None:
        payload["scope"] = scope
    if expires_in is not None:
        payload["expires_in"] = expires_in
    return payload
