# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Call-scoped authorization state.

While a protected tool runs, its `AuthorizationState` is held in a
`ContextVar`, so any code the tool calls can read the vault credential
without threading it through parameters:

    >>> from dedalus_vault import get_access_token_from_token_vault
    >>>
    >>> async def check_calendar(date: str) -> dict:
    ...     token = get_access_token_from_token_vault()
    ...     ...

Each asyncio task (and thread) sees its own value, so concurrent tool
calls never observe each other's state. Only one state may be active per
call stack; `run` refuses to nest.

This module also carries the execution context used to scope cached
credentials (`ToolContext`) and an ambient thread id that chat routes set
once per request (`set_ai_context`).
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .config import CredentialsContext
from .credentials import TokenSet
from .exceptions import AuthConfigError, NestedAuthorizationError, NotInProtectedCallError

R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Identifies the execution a cached credential belongs to.

    Attributes:
        thread_id: Conversation or thread identifier.
        tool_call_id: Identifier of this specific tool call.
        tool_name: Name of the tool being called.
    """

    thread_id: str | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None


@dataclass(slots=True)
class AuthorizationState:
    """The in-flight record for one protected call."""

    connection: str
    scopes: list[str]
    context: ToolContext = field(default_factory=ToolContext)
    authorization_params: dict[str, Any] | None = None
    credentials: TokenSet | None = None
    current_scopes: list[str] | None = None


_CURRENT_STATE: ContextVar[AuthorizationState | None] = ContextVar("dedalus_vault_authorization_state", default=None)
_AI_CONTEXT: ContextVar[ToolContext | None] = ContextVar("dedalus_vault_ai_context", default=None)


# =============================================================================
# In-flight state
# =============================================================================


def current_or_none() -> AuthorizationState | None:
    return _CURRENT_STATE.get()


def current() -> AuthorizationState:
    """Return the active state.

    Raises:
        NotInProtectedCallError: If called outside a protected call.
    """
    state = _CURRENT_STATE.get()
    if state is None:
        raise NotInProtectedCallError()
    return state


async def run(state: AuthorizationState, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run ``fn`` (sync or async) with ``state`` active, restoring on any exit.

    Raises:
        NestedAuthorizationError: If a state is already active.
    """
    if _CURRENT_STATE.get() is not None:
        raise NestedAuthorizationError()
    token = _CURRENT_STATE.set(state)
    try:
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
    finally:
        _CURRENT_STATE.reset(token)


def get_credentials_from_token_vault() -> TokenSet | None:
    """Credential resolved for the active protected call."""
    return current().credentials


def get_access_token_from_token_vault() -> str | None:
    """Access token resolved for the active protected call."""
    credentials = current().credentials
    return credentials.access_token if credentials is not None else None


# =============================================================================
# Execution context
# =============================================================================


def set_ai_context(*, thread_id: str | None = None, tool_call_id: str | None = None, tool_name: str | None = None) -> object:
    """Declare the ambient execution context for the current request.

    Returns a token for `reset_ai_context`.
    """
    return _AI_CONTEXT.set(ToolContext(thread_id=thread_id, tool_call_id=tool_call_id, tool_name=tool_name))


def reset_ai_context(token: object) -> None:
    _AI_CONTEXT.reset(token)  # type: ignore[arg-type]


def get_ai_context() -> ToolContext | None:
    return _AI_CONTEXT.get()


def default_context_getter(*args: Any, **kwargs: Any) -> ToolContext:
    """Context getter used when a tool does not supply one.

    Reads the ambient context from `set_ai_context`; an explicit
    ``tool_call_id``/``tool_name`` keyword on the invocation takes precedence.
    """
    ambient = _AI_CONTEXT.get() or ToolContext()
    return ToolContext(
        thread_id=ambient.thread_id,
        tool_call_id=kwargs.get("tool_call_id") or ambient.tool_call_id,
        tool_name=kwargs.get("tool_name") or ambient.tool_name,
    )


def ns_from_context(mode: CredentialsContext, context: ToolContext) -> tuple[str, ...]:
    """Cache namespace for ``context`` under the given caching mode.

    Raises:
        AuthConfigError: If ``context`` lacks a component ``mode`` needs.
    """
    def require(value: str | None, name: str) -> str:
        if not value:
            raise AuthConfigError(f"credentials_context={mode!r} requires {name} in the tool context")
        return str(value)

    if mode == "thread":
        return ("Threads", require(context.thread_id, "thread_id"))
    if mode == "tool":
        return ("Threads", require(context.thread_id, "thread_id"), "Tools", require(context.tool_name, "tool_name"))
    if mode == "tool-call":
        return (
            "Threads",
            require(context.thread_id, "thread_id"),
            "Tools",
            require(context.tool_name, "tool_name"),
            "ToolCalls",
            require(context.tool_call_id, "tool_call_id"),
        )
    raise AuthConfigError(f"unknown credentials_context: {mode!r}")


__all__ = [
    "AuthorizationState",
    "ToolContext",
    "current",
    "current_or_none",
    "default_context_getter",
    "get_access_token_from_token_vault",
    "get_ai_context",
    "get_credentials_from_token_vault",
    "ns_from_context",
    "reset_ai_context",
    "run",
    "set_ai_context",
]
