# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Authorizer configuration and validation.

Two layers of configuration:

- `Auth0ClientParams`: the authorization-server client used for token
  exchange. Fields not passed explicitly fall back to ``AUTH0_DOMAIN``,
  ``AUTH0_CLIENT_ID`` and ``AUTH0_CLIENT_SECRET``.
- `TokenVaultAuthorizerParams`: the per-tool policy (connection, scopes,
  token source, caching context).

Example:
    >>> auth0 = parse_client({"domain": "tenant.us.auth0.com"})
    >>> params = validate_params(
    ...     auth0,
    ...     TokenVaultAuthorizerParams(
    ...         connection="google-oauth2",
    ...         scopes=["https://www.googleapis.com/auth/calendar.freebusy"],
    ...         refresh_token=lambda *args, **kwargs: session.refresh_token,
    ...     ),
    ... )
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .exceptions import AuthConfigError
from .parameters import Parameter

if TYPE_CHECKING:
    from .stores import Store


CredentialsContext = Literal["thread", "tool", "tool-call"]

DEFAULT_CREDENTIALS_CONTEXT: CredentialsContext = "thread"


class SubjectTokenType(str, Enum):
    """Subject token types accepted by the Token Vault exchange (RFC 8693 §3)."""

    ACCESS_TOKEN = "urn:ietf:params:oauth:token-type:access_token"
    REFRESH_TOKEN = "urn:ietf:params:oauth:token-type:refresh_token"


SUBJECT_TOKEN_TYPES = SubjectTokenType


class Auth0ClientParams(BaseModel):
    """Authorization-server client identity."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    domain: str
    client_id: str | None = None
    client_secret: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_from_environment(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        values = {key: value for key, value in data.items() if value is not None}
        for key, env in (("domain", "AUTH0_DOMAIN"), ("client_id", "AUTH0_CLIENT_ID"), ("client_secret", "AUTH0_CLIENT_SECRET")):
            if key not in values and os.environ.get(env):
                values[key] = os.environ[env]
        return values

    @field_validator("domain")
    @classmethod
    def _normalize_domain(cls, value: str) -> str:
        value = value.strip()
        for prefix in ("https://", "http://"):
            if value.startswith(prefix):
                value = value[len(prefix) :]
        value = value.rstrip("/")
        if not value:
            raise ValueError("domain must be non-empty")
        return value

    def __repr__(self) -> str:
        secret = "'***'" if self.client_secret else "None"
        return f"Auth0ClientParams(domain={self.domain!r}, client_id={self.client_id!r}, client_secret={secret})"


@dataclass(slots=True)
class TokenVaultAuthorizerParams:
    """Per-tool Token Vault policy.

    Exactly one of ``refresh_token`` or ``access_token`` must be set. Token
    sources and ``login_hint`` may be literals or callables receiving the
    tool's invocation arguments.
    """

    connection: str
    scopes: list[str] = field(default_factory=list)
    refresh_token: Parameter[str | None] | None = None
    access_token: Parameter[Any] | None = None
    subject_token_type: SubjectTokenType | None = None
    login_hint: Parameter[str | None] | None = None
    authorization_params: dict[str, Any] | None = None
    credentials_context: CredentialsContext = DEFAULT_CREDENTIALS_CONTEXT
    store: Store | None = None

    @property
    def uses_token_exchange(self) -> bool:
        """False only for the passthrough mode, where the access token is used as-is."""
        return self.refresh_token is not None or (
            self.access_token is not None and self.subject_token_type == SubjectTokenType.ACCESS_TOKEN
        )


@dataclass(slots=True, frozen=True)
class ExchangeConfig:
    """Tunables for the token-exchange HTTP call."""

    token_path: str = "/oauth/token"
    """Path of the token endpoint on the authorization server."""

    timeout: float = 30.0
    """HTTP timeout in seconds."""

    scheme: str = "https"
    """URL scheme; only overridden for local test servers."""

    def token_endpoint(self, domain: str) -> str:
        return f"{self.scheme}://{domain}{self.token_path}"


def parse_client(partial: Auth0ClientParams | Mapping[str, Any] | None = None) -> Auth0ClientParams:
    """Validate a (possibly partial) client identity, filling gaps from the environment.

    Raises:
        AuthConfigError: If the domain cannot be determined or a field is invalid.
    """
    if isinstance(partial, Auth0ClientParams):
        return partial
    try:
        return Auth0ClientParams.model_validate(dict(partial or {}))
    except ValidationError as exc:
        raise AuthConfigError(f"invalid Auth0 client configuration: {exc}") from exc


def validate_params(auth0: Auth0ClientParams, params: TokenVaultAuthorizerParams) -> TokenVaultAuthorizerParams:
    """Check a policy against the client identity and return a normalized copy.

    Raises:
        AuthConfigError: If the policy is invalid or contradictory.
    """
    if not params.connection:
        raise AuthConfigError("connection must be non-empty")

    has_refresh_token = params.refresh_token is not None
    has_access_token = params.access_token is not None

    if not has_refresh_token and not has_access_token:
        raise AuthConfigError("Either refresh_token or access_token must be provided to initialize the Authorizer.")
    if has_refresh_token and has_access_token:
        raise AuthConfigError("Only one of refresh_token or access_token can be provided to initialize the Authorizer.")

    subject_token_type = params.subject_token_type
    if subject_token_type is not None:
        try:
            subject_token_type = SubjectTokenType(subject_token_type)
        except ValueError as exc:
            raise AuthConfigError(f"unsupported subject_token_type: {params.subject_token_type!r}") from exc

    if has_access_token and subject_token_type == SubjectTokenType.ACCESS_TOKEN:
        if not auth0.client_id or not auth0.client_secret:
            raise AuthConfigError(
                "client_id and client_secret must currently be provided when using access_token "
                "for token exchange with Token Vault."
            )

    credentials_context = params.credentials_context or DEFAULT_CREDENTIALS_CONTEXT
    if credentials_context not in get_args(CredentialsContext):
        raise AuthConfigError(
            f"credentials_context must be one of {list(get_args(CredentialsContext))}, got {credentials_context!r}"
        )

    if isinstance(params.scopes, str):
        raise AuthConfigError("scopes must be a list of strings, not a string")
    if not isinstance(params.scopes, (list, tuple, set, frozenset)):
        raise AuthConfigError(f"scopes must be a list of strings, got {type(params.scopes).__name__}")

    return dataclasses.replace(
        params,
        scopes=[str(scope) for scope in params.scopes],
        subject_token_type=subject_token_type,
        credentials_context=credentials_context,
        authorization_params=dict(params.authorization_params) if params.authorization_params else None,
    )


__all__ = [
    "Auth0ClientParams",
    "CredentialsContext",
    "DEFAULT_CREDENTIALS_CONTEXT",
    "ExchangeConfig",
    "SUBJECT_TOKEN_TYPES",
    "SubjectTokenType",
    "TokenVaultAuthorizerParams",
    "parse_client",
    "validate_params",
]
