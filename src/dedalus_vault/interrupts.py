# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Resumable authorization interrupts.

An interrupt is raised instead of a plain error when the user can fix the
problem by granting consent. It carries enough state for a UI layer to
start the consent flow and then re-invoke the same protected call:

    try:
        result = await list_repositories()
    except TokenVaultInterrupt as interrupt:
        return {"interrupt": interrupt.to_dict()}

Serialized interrupts are recognised with `Auth0Interrupt.is_interrupt`,
which matches on the ``name``/``code`` tags rather than on structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class InterruptCode(str, Enum):
    """Kinds of authorization gap."""

    TOKEN_VAULT_ERROR = "TOKEN_VAULT_ERROR"
    AUTHORIZATION_PENDING = "AUTHORIZATION_PENDING"
    ACCESS_DENIED = "ACCESS_DENIED"


class Auth0Interrupt(Exception):
    """Base class for authorization interrupts."""

    name: ClassVar[str] = "AUTH0_AI_INTERRUPT"
    code: InterruptCode | str

    _registry: ClassVar[dict[str, type[Auth0Interrupt]]] = {}

    def __init__(self, message: str, code: InterruptCode | str) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        interrupt_code = cls.__dict__.get("interrupt_code")
        if interrupt_code is not None:
            Auth0Interrupt._registry[str(InterruptCode(interrupt_code).value)] = cls

    @property
    def code_value(self) -> str:
        return self.code.value if isinstance(self.code, InterruptCode) else str(self.code)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation for the UI layer."""
        return {"name": self.name, "code": self.code_value, "message": self.message}

    @classmethod
    def is_interrupt(cls, obj: Any) -> bool:
        """Match an interrupt instance or its serialized form.

        Called on a subclass, additionally requires that subclass's code.
        """
        if isinstance(obj, Auth0Interrupt):
            return isinstance(obj, cls)
        if not isinstance(obj, dict) or obj.get("name") != Auth0Interrupt.name:
            return False
        own_code = cls.__dict__.get("interrupt_code")
        if own_code is None:
            return True
        return obj.get("code") == InterruptCode(own_code).value

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Auth0Interrupt:
        """Rebuild an interrupt from `to_dict` output.

        Raises:
            ValueError: If ``data`` is not a serialized interrupt.
        """
        if not Auth0Interrupt.is_interrupt(data):
            raise ValueError("not a serialized authorization interrupt")
        target = Auth0Interrupt._registry.get(data.get("code", ""))
        if target is None:
            return Auth0Interrupt(data.get("message", ""), data.get("code", ""))
        return target._from_fields(data)

    @classmethod
    def _from_fields(cls, data: dict[str, Any]) -> Auth0Interrupt:
        return cls(data.get("message", ""), data["code"])

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code_value!r}, message={self.message!r})"


class TokenVaultInterrupt(Auth0Interrupt):
    """Authorization to a connection is missing or lacks scopes.

    Attributes:
        connection: Connection the user must authorize (e.g. "google-oauth2").
        scopes: Scopes the protected tool is configured with.
        required_scopes: Scopes to request during consent.
        current_scopes: Scopes the user has already granted, if known.
        authorization_params: Extra parameters to forward to the consent flow.
    """

    interrupt_code: ClassVar[InterruptCode] = InterruptCode.TOKEN_VAULT_ERROR

    def __init__(
        self,
        message: str,
        *,
        connection: str,
        scopes: list[str],
        required_scopes: list[str],
        current_scopes: list[str] | None = None,
        authorization_params: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, InterruptCode.TOKEN_VAULT_ERROR)
        self.connection = connection
        self.scopes = list(scopes)
        self.required_scopes = list(required_scopes)
        self.current_scopes = list(current_scopes) if current_scopes is not None else None
        self.authorization_params = dict(authorization_params) if authorization_params else None

    @property
    def missing_scopes(self) -> list[str]:
        granted = set(self.current_scopes or ())
        return [s for s in self.required_scopes if s not in granted]

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "connection": self.connection,
                "scopes": list(self.scopes),
                "required_scopes": list(self.required_scopes),
                "current_scopes": list(self.current_scopes) if self.current_scopes is not None else None,
                "authorization_params": dict(self.authorization_params) if self.authorization_params else None,
            }
        )
        return payload

    @classmethod
    def _from_fields(cls, data: dict[str, Any]) -> TokenVaultInterrupt:
        return cls(
            data.get("message", ""),
            connection=data["connection"],
            scopes=data.get("scopes") or [],
            required_scopes=data.get("required_scopes") or [],
            current_scopes=data.get("current_scopes"),
            authorization_params=data.get("authorization_params"),
        )


@dataclass(slots=True)
class ToolInterruptPayload:
    """An interrupt paired with the tool invocation to replay after consent."""

    interrupt: dict[str, Any]
    tool_name: str
    tool_call_id: str | None = None
    tool_args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cause": self.interrupt,
            "toolName": self.tool_name,
            "toolCallId": self.tool_call_id,
            "toolArgs": dict(self.tool_args),
        }


def serialize_tool_interrupt(
    interrupt: Auth0Interrupt,
    *,
    tool_name: str,
    tool_call_id: str | None = None,
    tool_args: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Serialize an interrupt raised by a tool for transport to the UI."""
    return ToolInterruptPayload(
        interrupt=interrupt.to_dict(),
        tool_name=tool_name,
        tool_call_id=tool_call_id,
        tool_args=dict(tool_args or {}),
    ).to_dict()


__all__ = [
    "Auth0Interrupt",
    "InterruptCode",
    "TokenVaultInterrupt",
    "ToolInterruptPayload",
    "serialize_tool_interrupt",
]
