# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Google Calendar availability tool protected by the Token Vault.

The pattern:
1. Create a TokenVault for the tenant (AUTH0_DOMAIN, AUTH0_CLIENT_ID and
   AUTH0_CLIENT_SECRET are read from the environment)
2. Build a decorator for the connection and scopes the tool needs
3. Inside the tool, read the Google token with get_access_token_from_token_vault
4. Raise TokenVaultError when Google rejects the token
5. In the chat route, turn TokenVaultInterrupt into a consent prompt

Run:
    AUTH0_DOMAIN=tenant.us.auth0.com USER_REFRESH_TOKEN=... python examples/calendar_tool.py
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

import httpx

from dedalus_vault import (
    TokenVault,
    TokenVaultError,
    TokenVaultInterrupt,
    get_access_token_from_token_vault,
    serialize_tool_interrupt,
    set_ai_context,
)
from dedalus_vault.utils import setup_logger

FREEBUSY_URL = "https://www.googleapis.com/calendar/v3/freeBusy"

vault = TokenVault()

with_google_calendar = vault.with_token_vault(
    connection="google-oauth2",
    scopes=["https://www.googleapis.com/auth/calendar.freebusy"],
    refresh_token=lambda *args, **kwargs: os.environ.get("USER_REFRESH_TOKEN"),
)


@with_google_calendar
async def check_user_calendar(date: str) -> dict[str, Any]:
    """Report whether the user is busy on ``date``."""
    token = get_access_token_from_token_vault()
    body = {"timeMin": f"{date}T00:00:00Z", "timeMax": f"{date}T23:59:59Z", "items": [{"id": "primary"}]}

    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.post(FREEBUSY_URL, json=body, headers={"Authorization": f"Bearer {token}"})

    if response.status_code == 401:
        raise TokenVaultError("Authorization required to access the Token Vault")
    response.raise_for_status()

    busy = response.json()["calendars"]["primary"]["busy"]
    return {"date": date, "available": not busy}


async def handle_tool_call(thread_id: str, tool_call_id: str, date: str) -> dict[str, Any]:
    """What a chat route does with one tool call."""
    set_ai_context(thread_id=thread_id)
    try:
        return {"result": await check_user_calendar(date)}
    except TokenVaultInterrupt as interrupt:
        # The UI starts the consent flow, then replays the call
        return {
            "error": serialize_tool_interrupt(
                interrupt,
                tool_name="check_user_calendar",
                tool_call_id=tool_call_id,
                tool_args={"date": date},
            )
        }


def main() -> None:
    setup_logger(level=logging.DEBUG)
    outcome = asyncio.run(handle_tool_call("thread-1", "call-1", "2026-10-19"))
    print(json.dumps(outcome, indent=2))


if __name__ == "__main__":
    main()
