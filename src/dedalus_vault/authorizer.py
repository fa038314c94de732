# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Token Vault authorization for tool calls.

`TokenVaultAuthorizer.protect` wraps a tool's execute callable. Every call:

1. extracts the `ToolContext` from the invocation arguments,
2. refuses to run inside another protected call,
3. activates an `AuthorizationState` for the call,
4. reads the cached credential for the context, or exchanges and caches one,
5. runs the tool with the credential readable through
   `get_access_token_from_token_vault`,
6. turns `TokenVaultError` raised by the tool into a `TokenVaultInterrupt`
   and evicts the cached credential, and evicts on any other interrupt too.

Any other exception propagates unchanged.

Example:
    >>> vault = TokenVault({"domain": "tenant.us.auth0.com"})
    >>> with_google_calendar = vault.with_token_vault(
    ...     connection="google-oauth2",
    ...     scopes=["https://www.googleapis.com/auth/calendar.freebusy"],
    ...     refresh_token=get_refresh_token,
    ... )
    >>>
    >>> @with_google_calendar
    ... async def check_user_calendar(date: str) -> dict:
    ...     token = get_access_token_from_token_vault()
    ...     ...
"""

from __future__ import annotations

import functools
import inspect
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import httpx

from . import context as vault_context
from .config import (
    Auth0ClientParams,
    ExchangeConfig,
    TokenVaultAuthorizerParams,
    parse_client,
    validate_params,
)
from .context import AuthorizationState, ToolContext, default_context_getter, ns_from_context
from .credentials import TokenSet
from .exceptions import TokenVaultError
from .exchange import TokenExchangeEngine
from .identity import instance_id
from .interrupts import Auth0Interrupt, TokenVaultInterrupt
from .stores import Store, SubStore, default_store
from .utils import get_logger

_logger = get_logger("dedalus_vault.authorizer")

R = TypeVar("R")

ContextGetter = Callable[..., ToolContext]

CREDENTIAL_KEY = "credential"


class TokenVaultAuthorizer:
    """Requests authorization to a third-party service via the Token Vault.

    Args:
        auth0: Client identity, partial mapping, or ``None`` to read it
            from the environment.
        params: Tool policy.
        store: Credential store; overrides ``params.store``. Defaults to a
            process-wide `MemoryStore`.
        http_client: Shared ``httpx.AsyncClient`` for token exchange.
        exchange_config: HTTP tunables for token exchange.
        clock: Wall-clock source used to stamp token expiry.
        strict_exchange: Raise `ExchangeError` when the authorization server
            is unreachable instead of reporting missing authorization.

    Raises:
        AuthConfigError: If the configuration is invalid.
    """

    def __init__(
        self,
        auth0: Auth0ClientParams | Mapping[str, Any] | None,
        params: TokenVaultAuthorizerParams,
        *,
        store: Store | None = None,
        http_client: httpx.AsyncClient | None = None,
        exchange_config: ExchangeConfig | None = None,
        clock: Callable[[], float] = time.time,
        strict_exchange: bool = False,
    ) -> None:
        self._auth0 = parse_client(auth0)
        self._params = validate_params(self._auth0, params)
        self._instance_id = instance_id(self._auth0, self._params)

        # An empty MemoryStore is falsy, so compare against None
        if store is None:
            store = self._params.store if self._params.store is not None else default_store()
        self._credentials_store: SubStore[TokenSet] = SubStore(
            store,
            base_namespace=(self._instance_id, "Credentials"),
            get_ttl=lambda credentials: credentials.expires_in,
        )
        self._engine = TokenExchangeEngine(
            self._auth0,
            self._params,
            config=exchange_config,
            http_client=http_client,
            clock=clock,
            strict=strict_exchange,
        )

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def params(self) -> TokenVaultAuthorizerParams:
        return self._params

    @property
    def credentials_store(self) -> SubStore[TokenSet]:
        return self._credentials_store

    def handle_authorization_interrupts(self, interrupt: Auth0Interrupt) -> Any:
        """Deliver an interrupt to the caller. Raises by default.

        Framework adapters override this to return the interrupt as the
        tool result instead.
        """
        raise interrupt

    def namespace_for(self, context: ToolContext) -> tuple[str, ...]:
        return ns_from_context(self._params.credentials_context, context)

    async def invalidate(self, context: ToolContext) -> None:
        """Evict the cached credential for ``context``."""
        await self._credentials_store.delete(self.namespace_for(context), CREDENTIAL_KEY)

    async def _get_credentials(
        self, state: AuthorizationState, namespace: tuple[str, ...], args: tuple[Any, ...], kwargs: Mapping[str, Any]
    ) -> TokenSet:
        credentials = await self._credentials_store.get(namespace, CREDENTIAL_KEY)
        if credentials is not None:
            _logger.debug(
                "credential cache hit",
                extra={"event": "vault.cache.hit", "connection": state.connection, "instance": self._instance_id},
            )
            state.current_scopes = credentials.scopes
            return credentials

        _logger.debug(
            "credential cache miss",
            extra={"event": "vault.cache.miss", "connection": state.connection, "instance": self._instance_id},
        )
        credentials = await self._engine.get_access_token(state, args, kwargs)
        await self._credentials_store.put(namespace, CREDENTIAL_KEY, credentials)
        return credentials

    def protect(
        self,
        get_context: ContextGetter | None,
        execute: Callable[..., Awaitable[R] | R],
    ) -> Callable[..., Awaitable[R]]:
        """Wrap ``execute`` so every call is authorized through the Token Vault.

        Args:
            get_context: Builds the `ToolContext` from the invocation
                arguments. ``None`` uses `default_context_getter`.
            execute: The tool implementation, sync or async.

        Returns:
            An async callable with the same arguments as ``execute``.
        """
        get_context = get_context or default_context_getter

        @functools.wraps(execute)
        async def wrapped(*args: Any, **kwargs: Any) -> Any:
            tool_context = get_context(*args, **kwargs)
            state = AuthorizationState(
                connection=self._params.connection,
                scopes=list(self._params.scopes),
                context=tool_context,
                authorization_params=self._params.authorization_params,
            )

            return await vault_context.run(state, self._run_protected, state, execute, args, kwargs)

        return wrapped

    async def _run_protected(
        self,
        state: AuthorizationState,
        execute: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        namespace = self.namespace_for(state.context)
        try:
            state.credentials = await self._get_credentials(state, namespace, args, kwargs)
            result = execute(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result
        except TokenVaultError as err:
            await self._credentials_store.delete(namespace, CREDENTIAL_KEY)
            interrupt = TokenVaultInterrupt(
                err.message,
                connection=state.connection,
                scopes=state.scopes,
                required_scopes=state.scopes,
                current_scopes=state.current_scopes,
                authorization_params=state.authorization_params,
            )
            _logger.info(
                "downstream rejected vault credential",
                extra={"event": "vault.interrupt", "connection": state.connection, "code": interrupt.code_value},
            )
            return self.handle_authorization_interrupts(interrupt)
        except Auth0Interrupt as interrupt:
            await self._credentials_store.delete(namespace, CREDENTIAL_KEY)
            _logger.info(
                "authorization required",
                extra={"event": "vault.interrupt", "connection": state.connection, "code": interrupt.code_value},
            )
            return self.handle_authorization_interrupts(interrupt)


class TokenVault:
    """Factory for Token Vault tool decorators sharing one client and store.

    Args:
        auth0: Client identity, partial mapping, or ``None`` for environment.
        store: Credential store shared by every authorizer created here.
        http_client: Shared ``httpx.AsyncClient`` for token exchange.
        strict_exchange: See `TokenVaultAuthorizer`.
    """

    def __init__(
        self,
        auth0: Auth0ClientParams | Mapping[str, Any] | None = None,
        *,
        store: Store | None = None,
        http_client: httpx.AsyncClient | None = None,
        strict_exchange: bool = False,
    ) -> None:
        self._auth0 = parse_client(auth0)
        self._store = store
        self._http_client = http_client
        self._strict_exchange = strict_exchange

    def authorizer(self, **params: Any) -> TokenVaultAuthorizer:
        return TokenVaultAuthorizer(
            self._auth0,
            TokenVaultAuthorizerParams(**params),
            store=self._store,
            http_client=self._http_client,
            strict_exchange=self._strict_exchange,
        )

    def with_token_vault(
        self, *, get_context: ContextGetter | None = None, **params: Any
    ) -> Callable[[Callable[..., Any]], Callable[..., Awaitable[Any]]]:
        """Return a decorator that protects tools with the given policy.

        Keyword arguments are the fields of `TokenVaultAuthorizerParams`.
        Configuration errors surface here, not at call time.
        """
        authorizer = self.authorizer(**params)

        def decorator(execute: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
            return authorizer.protect(get_context, execute)

        decorator.authorizer = authorizer  # type: ignore[attr-defined]
        return decorator


__all__ = ["CREDENTIAL_KEY", "ContextGetter", "TokenVault", "TokenVaultAuthorizer"]
