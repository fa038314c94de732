# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Token Vault token exchange.

Trades the user's own token (refresh or access token) for a third-party
access token scoped to one connection. Three acquisition strategies, in
priority order:

1. ``refresh_token`` configured: exchange it (subject type refresh_token).
2. ``access_token`` configured with ``subject_token_type=ACCESS_TOKEN``:
   exchange it (subject type access_token, client credentials required).
3. ``access_token`` configured without a subject type: the resolved value
   already is the third-party token and no request is made.

The exchange is a single JSON POST to ``https://{domain}/oauth/token``. A
rejected exchange yields ``None`` ("no credential"), which validation turns
into a `TokenVaultInterrupt` so the user can grant consent.

References:
    RFC 8693: OAuth 2.0 Token Exchange
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from .config import Auth0ClientParams, ExchangeConfig, SubjectTokenType, TokenVaultAuthorizerParams
from .context import AuthorizationState
from .credentials import TokenResponse, TokenSet, parse_scopes, token_set_from_response
from .exceptions import ExchangeError
from .interrupts import TokenVaultInterrupt
from .parameters import resolve_parameter
from .utils import get_logger

_logger = get_logger("dedalus_vault.exchange")

TOKEN_VAULT_GRANT_TYPE = "urn:auth0:params:oauth:grant-type:token-exchange:federated-connection-access-token"
TOKEN_VAULT_REQUESTED_TOKEN_TYPE = "http://auth0.com/oauth/token-type/federated-connection-access-token"


class TokenExchangeEngine:
    """Obtains and validates Token Vault credentials for one policy.

    Args:
        auth0: Validated client identity.
        params: Validated policy.
        config: HTTP tunables.
        http_client: Shared ``httpx.AsyncClient``; a short-lived client is
            created per exchange when omitted.
        clock: Wall-clock source for absolute token expiry.
        strict: Raise `ExchangeError` on transport failures instead of
            treating them as "no credential".
    """

    def __init__(
        self,
        auth0: Auth0ClientParams,
        params: TokenVaultAuthorizerParams,
        *,
        config: ExchangeConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
        strict: bool = False,
    ) -> None:
        self._auth0 = auth0
        self._params = params
        self._config = config or ExchangeConfig()
        self._http_client = http_client
        self._clock = clock
        self._strict = strict

    @property
    def token_endpoint(self) -> str:
        return self._config.token_endpoint(self._auth0.domain)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _build_request_body(
        self,
        subject_token: str,
        subject_token_type: SubjectTokenType,
        *,
        connection: str,
        login_hint: str | None,
    ) -> dict[str, str]:
        body = {
            "grant_type": TOKEN_VAULT_GRANT_TYPE,
            "client_id": self._auth0.client_id,
            "client_secret": self._auth0.client_secret,
            "subject_token_type": subject_token_type.value,
            "subject_token": subject_token,
            "login_hint": login_hint,
            "connection": connection,
            "requested_token_type": TOKEN_VAULT_REQUESTED_TOKEN_TYPE,
        }
        return {key: value for key, value in body.items() if value is not None}

    async def _post(self, body: dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(self.token_endpoint, json=body, timeout=self._config.timeout)
        async with httpx.AsyncClient(timeout=self._config.timeout) as client:
            return await client.post(self.token_endpoint, json=body)

    async def exchange(
        self,
        subject_token: str,
        subject_token_type: SubjectTokenType,
        *,
        connection: str,
        login_hint: str | None = None,
    ) -> TokenResponse | None:
        """Perform one token-exchange request.

        Returns:
            The token response, or ``None`` if the server refused the
            exchange or (unless strict) could not be reached.

        Raises:
            ExchangeError: On transport failure when ``strict`` is set.
        """
        body = self._build_request_body(
            subject_token, subject_token_type, connection=connection, login_hint=login_hint
        )

        try:
            response = await self._post(body)
        except httpx.HTTPError as exc:
            _logger.warning(
                "token exchange transport failure",
                extra={"event": "vault.exchange.transport_error", "connection": connection, "error": type(exc).__name__},
            )
            if self._strict:
                retryable = isinstance(exc, (httpx.TimeoutException, httpx.ConnectError))
                raise ExchangeError(f"token exchange with {self._auth0.domain} failed: {exc}", retryable=retryable) from exc
            return None

        if not response.is_success:
            _logger.info(
                "token exchange rejected",
                extra={
                    "event": "vault.exchange.rejected",
                    "connection": connection,
                    "status": response.status_code,
                    "error": _oauth_error(response),
                },
            )
            return None

        try:
            token_response = TokenResponse.from_dict(response.json())
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError too
            _logger.warning(
                "malformed token exchange response",
                extra={"event": "vault.exchange.malformed", "connection": connection, "error": str(exc)},
            )
            return None

        _logger.debug(
            "token exchange succeeded",
            extra={"event": "vault.exchange.success", "connection": connection, "scope": token_response.scope},
        )
        return token_response

    # ------------------------------------------------------------------
    # Strategy selection
    # ------------------------------------------------------------------

    async def get_token_response(
        self, args: tuple[Any, ...] = (), kwargs: Mapping[str, Any] | None = None
    ) -> TokenResponse | None:
        """Resolve the configured token source and obtain a token response."""
        params = self._params

        if not params.uses_token_exchange:
            return _coerce_passthrough(await resolve_parameter(params.access_token, args, kwargs), params.scopes)

        if params.refresh_token is not None:
            subject_token = await resolve_parameter(params.refresh_token, args, kwargs)
            subject_token_type = SubjectTokenType.REFRESH_TOKEN
        else:
            subject_token = await resolve_parameter(params.access_token, args, kwargs)
            subject_token_type = SubjectTokenType.ACCESS_TOKEN

        if not subject_token:
            _logger.info(
                "no subject token available",
                extra={"event": "vault.exchange.no_subject_token", "connection": params.connection},
            )
            return None

        login_hint = await resolve_parameter(params.login_hint, args, kwargs) if params.login_hint is not None else None

        return await self.exchange(
            str(subject_token), subject_token_type, connection=params.connection, login_hint=login_hint or None
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_token(self, response: TokenResponse | None, state: AuthorizationState) -> TokenResponse:
        """Check that ``response`` exists and grants every required scope.

        Records the granted scopes on ``state.current_scopes`` and returns
        the validated response.

        Raises:
            TokenVaultInterrupt: If there is no token or scopes are missing.
        """
        if response is None:
            raise TokenVaultInterrupt(
                f"Authorization required to access the Token Vault: {state.connection}",
                connection=state.connection,
                scopes=state.scopes,
                required_scopes=state.scopes,
                authorization_params=state.authorization_params,
            )

        current_scopes = parse_scopes(response.scope)
        state.current_scopes = current_scopes
        granted = set(current_scopes)
        missing_scopes = [scope for scope in state.scopes if scope not in granted]

        if missing_scopes:
            raise TokenVaultInterrupt(
                f"Authorization required to access the Token Vault: {state.connection}. "
                f"Authorized scopes: {', '.join(current_scopes)}. Missing scopes: {', '.join(missing_scopes)}",
                connection=state.connection,
                scopes=state.scopes,
                required_scopes=[*current_scopes, *missing_scopes],
                current_scopes=current_scopes,
                authorization_params=state.authorization_params,
            )
        return response

    async def get_access_token(
        self,
        state: AuthorizationState,
        args: tuple[Any, ...] = (),
        kwargs: Mapping[str, Any] | None = None,
    ) -> TokenSet:
        """Obtain, validate and convert a credential for the active call."""
        response = await self.get_token_response(args, kwargs)
        validated = self.validate_token(response, state)
        return token_set_from_response(validated, now=self._clock())


def _coerce_passthrough(value: Any, scopes: list[str]) -> TokenResponse | None:
    """Accept a raw access token string or a token-response mapping.

    A bare string carries no scope information; it is taken to hold the
    configured scopes.
    """
    if not value:
        return None
    if isinstance(value, TokenResponse):
        return value
    if isinstance(value, str):
        return TokenResponse(access_token=value, scope=" ".join(scopes) or None)
    if isinstance(value, Mapping):
        try:
            return TokenResponse.from_dict(dict(value))
        except ValueError:
            return None
    raise TypeError(f"access_token must resolve to a string or token response, got {type(value).__name__}")


def _oauth_error(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload.get("error") if isinstance(payload, dict) else None


__all__ = [
    "TOKEN_VAULT_GRANT_TYPE",
    "TOKEN_VAULT_REQUESTED_TOKEN_TYPE",
    "TokenExchangeEngine",
]
