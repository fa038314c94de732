# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Error taxonomy for Token Vault authorization."""

from __future__ import annotations

from enum import Enum


class VaultErrorCode(str, Enum):
    """Error codes, checked by kind rather than by class inspection.

    Fatal, surfaced to the integrator:
        CONFIGURATION, NESTED_AUTHORIZATION, NOT_IN_PROTECTED_CALL

    Recoverable through user consent (converted into interrupts):
        AUTHORIZATION_REQUIRED, TOKEN_VAULT

    Infrastructure:
        EXCHANGE_FAILED
    """

    CONFIGURATION = "CONFIGURATION"
    AUTHORIZATION_REQUIRED = "AUTHORIZATION_REQUIRED"
    TOKEN_VAULT = "TOKEN_VAULT"
    NESTED_AUTHORIZATION = "NESTED_AUTHORIZATION"
    NOT_IN_PROTECTED_CALL = "NOT_IN_PROTECTED_CALL"
    EXCHANGE_FAILED = "EXCHANGE_FAILED"

    @property
    def recoverable(self) -> bool:
        """True for codes a user can resolve by granting consent."""
        return self in (VaultErrorCode.AUTHORIZATION_REQUIRED, VaultErrorCode.TOKEN_VAULT)


class VaultError(Exception):
    """Base class for dedalus_vault errors."""

    default_code = VaultErrorCode.CONFIGURATION

    def __init__(self, message: str, *, code: VaultErrorCode | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = VaultErrorCode(code) if code is not None else self.default_code


class AuthConfigError(VaultError):
    """Invalid or contradictory authorizer configuration."""

    default_code = VaultErrorCode.CONFIGURATION


class TokenVaultError(VaultError):
    """Raised by tool code when a downstream API rejects the vault credential.

    The authorizer evicts the cached credential and turns this into a
    `TokenVaultInterrupt`:

        from dedalus_vault import TokenVaultError, get_access_token_from_token_vault

        async def list_repositories() -> list[str]:
            token = get_access_token_from_token_vault()
            response = await client.get("/user/repos", headers={"Authorization": f"Bearer {token}"})
            if response.status_code == 401:
                raise TokenVaultError("Authorization required to access the Token Vault")
            return [repo["name"] for repo in response.json()]
    """

    default_code = VaultErrorCode.TOKEN_VAULT


class NestedAuthorizationError(VaultError):
    """A protected call was started while another one is active."""

    default_code = VaultErrorCode.NESTED_AUTHORIZATION

    def __init__(self, message: str = "Cannot nest tool calls that require Token Vault authorization.") -> None:
        super().__init__(message)


class NotInProtectedCallError(VaultError):
    """Authorization state was read outside a protected call."""

    default_code = VaultErrorCode.NOT_IN_PROTECTED_CALL

    def __init__(self, message: str = "The tool must be wrapped with the TokenVaultAuthorizer.") -> None:
        super().__init__(message)


class ExchangeError(VaultError):
    """The authorization server could not be reached during token exchange.

    Attributes:
        retryable: Whether the failure looks transient (timeouts, connect errors).
    """

    default_code = VaultErrorCode.EXCHANGE_FAILED

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


__all__ = [
    "AuthConfigError",
    "ExchangeError",
    "NestedAuthorizationError",
    "NotInProtectedCallError",
    "TokenVaultError",
    "VaultError",
    "VaultErrorCode",
]
