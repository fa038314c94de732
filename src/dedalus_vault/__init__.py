# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Delegated third-party credentials for AI tool calls via the Auth0 Token Vault.

Usage:
    from dedalus_vault import TokenVault, TokenVaultError, get_access_token_from_token_vault

    vault = TokenVault({"domain": "tenant.us.auth0.com"})

    with_github = vault.with_token_vault(
        connection="github",
        scopes=["repo"],
        refresh_token=lambda *args, **kwargs: session.refresh_token,
    )

    @with_github
    async def list_repositories() -> list[str]:
        token = get_access_token_from_token_vault()
        ...

Calls that lack authorization raise `TokenVaultInterrupt`; render a consent
flow from `interrupt.to_dict()` and call the tool again afterwards.
"""

from .authorizer import TokenVault, TokenVaultAuthorizer
from .config import (
    SUBJECT_TOKEN_TYPES,
    Auth0ClientParams,
    ExchangeConfig,
    SubjectTokenType,
    TokenVaultAuthorizerParams,
)
from .context import (
    AuthorizationState,
    ToolContext,
    get_access_token_from_token_vault,
    get_ai_context,
    get_credentials_from_token_vault,
    reset_ai_context,
    set_ai_context,
)
from .credentials import TokenResponse, TokenSet
from .exceptions import (
    AuthConfigError,
    ExchangeError,
    NestedAuthorizationError,
    NotInProtectedCallError,
    TokenVaultError,
    VaultError,
    VaultErrorCode,
)
from .interrupts import Auth0Interrupt, InterruptCode, TokenVaultInterrupt, serialize_tool_interrupt
from .stores import MemoryStore, Store, SubStore


__all__ = [
    # Authorization
    "TokenVault",
    "TokenVaultAuthorizer",
    "TokenVaultAuthorizerParams",
    "Auth0ClientParams",
    "ExchangeConfig",
    "SubjectTokenType",
    "SUBJECT_TOKEN_TYPES",
    # Context
    "AuthorizationState",
    "ToolContext",
    "get_access_token_from_token_vault",
    "get_credentials_from_token_vault",
    "set_ai_context",
    "reset_ai_context",
    "get_ai_context",
    # Credentials and stores
    "TokenResponse",
    "TokenSet",
    "Store",
    "MemoryStore",
    "SubStore",
    # Interrupts
    "Auth0Interrupt",
    "InterruptCode",
    "TokenVaultInterrupt",
    "serialize_tool_interrupt",
    # Errors
    "VaultError",
    "VaultErrorCode",
    "AuthConfigError",
    "TokenVaultError",
    "NestedAuthorizationError",
    "NotInProtectedCallError",
    "ExchangeError",
]
