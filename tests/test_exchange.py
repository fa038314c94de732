# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Tests for Token Vault token exchange.

The engine trades the user's refresh or access token for a connection-scoped
third-party token with a single JSON POST to the tenant's token endpoint.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from dedalus_vault.config import SubjectTokenType, TokenVaultAuthorizerParams, parse_client, validate_params
from dedalus_vault.context import AuthorizationState
from dedalus_vault.credentials import TokenResponse
from dedalus_vault.exceptions import ExchangeError
from dedalus_vault.exchange import (
    TOKEN_VAULT_GRANT_TYPE,
    TOKEN_VAULT_REQUESTED_TOKEN_TYPE,
    TokenExchangeEngine,
)
from dedalus_vault.interrupts import TokenVaultInterrupt
from tests.helpers import DOMAIN, TOKEN_URL, FakeClock, token_payload


def _engine(client: dict | None = None, *, clock=None, strict: bool = False, **params) -> TokenExchangeEngine:
    auth0 = parse_client(client or {"domain": DOMAIN})
    values = {"connection": "google-oauth2", "scopes": ["calendar.freebusy"]}
    values.update(params)
    validated = validate_params(auth0, TokenVaultAuthorizerParams(**values))
    kwargs = {"clock": clock} if clock is not None else {}
    return TokenExchangeEngine(auth0, validated, strict=strict, **kwargs)


def _state(scopes: list[str] | None = None) -> AuthorizationState:
    return AuthorizationState(connection="google-oauth2", scopes=scopes or ["calendar.freebusy"])


def _sent_body(route: respx.Route) -> dict:
    return json.loads(route.calls.last.request.content)


# =============================================================================
# Request construction
# =============================================================================


class TestExchangeRequest:
    """What goes over the wire."""

    def test_token_endpoint(self):
        """The token endpoint is derived from the tenant domain."""
        assert _engine(refresh_token="rt").token_endpoint == TOKEN_URL

    @respx.mock
    @pytest.mark.anyio
    async def test_refresh_token_exchange(self):
        """A refresh-token source sends the federated-connection grant."""
        route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=token_payload()))
        engine = _engine(refresh_token=lambda *args, **kwargs: "user-refresh-token")

        response = await engine.get_token_response()

        assert route.called
        assert response is not None
        assert response.access_token == "google-at"
        body = _sent_body(route)
        assert body == {
            "grant_type": TOKEN_VAULT_GRANT_TYPE,
            "subject_token_type": SubjectTokenType.REFRESH_TOKEN.value,
            "subject_token": "user-refresh-token",
            "connection": "google-oauth2",
            "requested_token_type": TOKEN_VAULT_REQUESTED_TOKEN_TYPE,
        }

    @respx.mock
    @pytest.mark.anyio
    async def test_sent_as_json(self):
        """The exchange body is sent as JSON."""
        route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=token_payload()))
        await _engine(refresh_token="rt").get_token_response()
        assert route.calls.last.request.headers["content-type"] == "application/json"

    @respx.mock
    @pytest.mark.anyio
    async def test_client_credentials_included(self):
        """Configured client credentials are sent with the exchange."""
        route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=token_payload()))
        engine = _engine({"domain": DOMAIN, "client_id": "cid", "client_secret": "shh"}, refresh_token="rt")

        await engine.get_token_response()

        body = _sent_body(route)
        assert body["client_id"] == "cid"
        assert body["client_secret"] == "shh"

    @respx.mock
    @pytest.mark.anyio
    async def test_access_token_exchange(self):
        """An access-token source with ACCESS_TOKEN subject type is exchanged."""
        route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=token_payload()))
        engine = _engine(
            {"domain": DOMAIN, "client_id": "cid", "client_secret": "shh"},
            access_token=lambda request: request["token"],
            subject_token_type=SubjectTokenType.ACCESS_TOKEN,
        )

        await engine.get_token_response(({"token": "user-access-token"},))

        body = _sent_body(route)
        assert body["subject_token_type"] == SubjectTokenType.ACCESS_TOKEN.value
        assert body["subject_token"] == "user-access-token"

    @respx.mock
    @pytest.mark.anyio
    async def test_login_hint_resolved_from_arguments(self):
        """login_hint callables receive the tool's invocation arguments."""
        route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=token_payload()))

        async def login_hint(*args, user_id: str, **kwargs) -> str:
            return f"{user_id}@example.com"

        engine = _engine(refresh_token="rt", login_hint=login_hint)
        await engine.get_token_response((), {"user_id": "ada"})

        assert _sent_body(route)["login_hint"] == "ada@example.com"

    @respx.mock
    @pytest.mark.anyio
    async def test_empty_subject_token_skips_request(self):
        """No subject token means no request and no credential."""
        engine = _engine(refresh_token=lambda *args, **kwargs: None)

        assert await engine.get_token_response() is None
        assert respx.calls.call_count == 0

    @respx.mock
    @pytest.mark.anyio
    async def test_shared_http_client(self):
        """A caller-supplied AsyncClient is used for the exchange."""
        route = respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=token_payload()))
        auth0 = parse_client({"domain": DOMAIN})
        params = validate_params(auth0, TokenVaultAuthorizerParams(connection="github", refresh_token="rt"))

        async with httpx.AsyncClient() as client:
            engine = TokenExchangeEngine(auth0, params, http_client=client)
            response = await engine.get_token_response()

        assert route.called
        assert response is not None


# =============================================================================
# Failure handling
# =============================================================================


class TestExchangeFailures:
    """Refusals become "no credential"; transport errors are configurable."""

    @respx.mock
    @pytest.mark.anyio
    @pytest.mark.parametrize("status", [400, 401, 403, 500])
    async def test_rejection_returns_none(self, status: int):
        """Non-2xx responses mean no credential."""
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(status, json={"error": "federated_connection_refresh_token_not_found"})
        )
        assert await _engine(refresh_token="rt").get_token_response() is None

    @respx.mock
    @pytest.mark.anyio
    async def test_non_json_error_body(self):
        """An error body that is not JSON is tolerated."""
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(502, text="Bad Gateway"))
        assert await _engine(refresh_token="rt").get_token_response() is None

    @respx.mock
    @pytest.mark.anyio
    async def test_malformed_success_returns_none(self):
        """A 2xx body without access_token means no credential."""
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"token_type": "Bearer"}))
        assert await _engine(refresh_token="rt").get_token_response() is None

    @respx.mock
    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "body",
        [
            [{"access_token": "at"}],
            {"access_token": "at", "scope": ["calendar.freebusy"]},
            {"access_token": "at", "expires_in": {}},
            {"access_token": "at", "expires_in": "soon"},
            {"access_token": 12345},
        ],
    )
    async def test_wrongly_shaped_success_returns_none(self, body):
        """A 2xx body with mistyped fields means no credential."""
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=body))
        assert await _engine(refresh_token="rt").get_token_response() is None

    @respx.mock
    @pytest.mark.anyio
    async def test_invalid_json_returns_none(self):
        """A 2xx body that is not JSON means no credential."""
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, text="not json"))
        assert await _engine(refresh_token="rt").get_token_response() is None

    @respx.mock
    @pytest.mark.anyio
    async def test_transport_error_returns_none(self):
        """Transport failures mean no credential by default."""
        respx.post(TOKEN_URL).mock(side_effect=httpx.ConnectError("connection refused"))
        assert await _engine(refresh_token="rt").get_token_response() is None

    @respx.mock
    @pytest.mark.anyio
    async def test_strict_transport_error_raises(self):
        """Strict mode raises a retryable ExchangeError on timeouts."""
        respx.post(TOKEN_URL).mock(side_effect=httpx.ReadTimeout("timed out"))
        engine = _engine(refresh_token="rt", strict=True)

        with pytest.raises(ExchangeError) as exc_info:
            await engine.get_token_response()
        assert exc_info.value.retryable is True

    @respx.mock
    @pytest.mark.anyio
    async def test_strict_protocol_error_not_retryable(self):
        """Strict mode marks protocol errors as not retryable."""
        respx.post(TOKEN_URL).mock(side_effect=httpx.RemoteProtocolError("bad frame"))
        engine = _engine(refresh_token="rt", strict=True)

        with pytest.raises(ExchangeError) as exc_info:
            await engine.get_token_response()
        assert exc_info.value.retryable is False


# =============================================================================
# Passthrough
# =============================================================================


class TestPassthrough:
    """``access_token`` without a subject type is used as-is."""

    @respx.mock
    @pytest.mark.anyio
    async def test_string_makes_no_request(self):
        """A plain string is used as the token without any request."""
        engine = _engine(access_token=lambda *args, **kwargs: "third-party-token")

        response = await engine.get_token_response()

        assert respx.calls.call_count == 0
        assert response == TokenResponse(access_token="third-party-token", scope="calendar.freebusy")

    @pytest.mark.anyio
    async def test_mapping(self):
        """A token-response mapping is parsed."""
        engine = _engine(access_token={"access_token": "at", "scope": "calendar.freebusy", "expires_in": 60})
        response = await engine.get_token_response()
        assert response is not None
        assert response.expires_in == 60.0

    @pytest.mark.anyio
    async def test_mapping_without_token(self):
        """A mapping without access_token means no credential."""
        engine = _engine(access_token=lambda: {"token_type": "Bearer"})
        assert await engine.get_token_response() is None

    @pytest.mark.anyio
    async def test_token_response_instance(self):
        """A TokenResponse instance is returned as-is."""
        supplied = TokenResponse(access_token="at", scope="calendar.freebusy")
        engine = _engine(access_token=lambda: supplied)
        assert await engine.get_token_response() is supplied

    @pytest.mark.anyio
    async def test_falsy_value(self):
        """An empty value means no credential."""
        engine = _engine(access_token=lambda: "")
        assert await engine.get_token_response() is None

    @pytest.mark.anyio
    async def test_unsupported_type(self):
        """Other value types are a programming error."""
        engine = _engine(access_token=lambda: 42)
        with pytest.raises(TypeError):
            await engine.get_token_response()


# =============================================================================
# Validation
# =============================================================================


class TestValidateToken:
    def test_missing_token_raises_interrupt(self):
        """No token raises an interrupt for the configured scopes."""
        engine = _engine(refresh_token="rt", authorization_params={"access_type": "offline"})
        state = _state()
        state.authorization_params = {"access_type": "offline"}

        with pytest.raises(TokenVaultInterrupt) as exc_info:
            engine.validate_token(None, state)

        interrupt = exc_info.value
        assert interrupt.message == "Authorization required to access the Token Vault: google-oauth2"
        assert interrupt.required_scopes == ["calendar.freebusy"]
        assert interrupt.authorization_params == {"access_type": "offline"}

    def test_sufficient_scopes(self):
        """Granted scopes are recorded on the state."""
        state = _state()
        _engine(refresh_token="rt").validate_token(
            TokenResponse(access_token="at", scope="openid calendar.freebusy"), state
        )
        assert state.current_scopes == ["openid", "calendar.freebusy"]

    @pytest.mark.parametrize("granted", ["calendar.freebusy calendar.events", "calendar.freebusy,calendar.events"])
    def test_granted_scope_separators(self, granted: str):
        """Granted scopes may be space- or comma-separated."""
        state = _state(["calendar.freebusy", "calendar.events"])
        _engine(refresh_token="rt").validate_token(TokenResponse(access_token="at", scope=granted), state)
        assert state.current_scopes == ["calendar.freebusy", "calendar.events"]

    def test_missing_scopes_raise_interrupt(self):
        """Missing scopes raise an interrupt listing granted and missing scopes."""
        state = _state(["calendar.freebusy", "calendar.events"])

        with pytest.raises(TokenVaultInterrupt) as exc_info:
            _engine(refresh_token="rt").validate_token(TokenResponse(access_token="at", scope="calendar.freebusy"), state)

        interrupt = exc_info.value
        assert interrupt.current_scopes == ["calendar.freebusy"]
        assert interrupt.required_scopes == ["calendar.freebusy", "calendar.events"]
        assert interrupt.missing_scopes == ["calendar.events"]
        assert "Missing scopes: calendar.events" in interrupt.message
        assert state.current_scopes == ["calendar.freebusy"]

    def test_no_scope_in_response(self):
        """A token without scope grants nothing."""
        state = _state()
        with pytest.raises(TokenVaultInterrupt):
            _engine(refresh_token="rt").validate_token(TokenResponse(access_token="at"), state)
        assert state.current_scopes == []

    def test_returns_validated_response(self):
        """validate_token returns the response it accepted."""
        response = TokenResponse(access_token="at", scope="calendar.freebusy")
        assert _engine(refresh_token="rt").validate_token(response, _state()) is response

    @respx.mock
    @pytest.mark.anyio
    async def test_get_access_token_stamps_expiry(self):
        """The returned TokenSet carries an absolute expiry."""
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=token_payload(expires_in=3600)))
        clock = FakeClock(now=1000.0)

        token_set = await _engine(refresh_token="rt", clock=clock).get_access_token(_state())

        assert token_set.access_token == "google-at"
        assert token_set.expires_at == 4600.0
        assert token_set.scopes == ["calendar.freebusy"]
