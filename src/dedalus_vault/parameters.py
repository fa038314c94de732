# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Lazily resolved configuration values.

Token sources and login hints may be literals or callables that receive the
protected tool's invocation arguments, so a tool can pull the subject token
from the request it is serving. Callables may be sync or async.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar, Union

T = TypeVar("T")

Parameter = Union[T, Callable[..., Union[T, Awaitable[T]]]]


async def resolve_parameter(
    value: Parameter[T],
    args: tuple[Any, ...] = (),
    kwargs: Mapping[str, Any] | None = None,
) -> T:
    """Return ``value``, or the (awaited) result of calling it with the invocation arguments."""
    if not callable(value):
        return value
    result = value(*args, **dict(kwargs or {}))
    if inspect.isawaitable(result):
        result = await result
    return result


__all__ = ["Parameter", "resolve_parameter"]
