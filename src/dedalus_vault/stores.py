# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Namespaced key-value stores for cached credentials.

A `Store` maps ``namespace -> key -> value`` where a namespace is a tuple of
strings. Implementations may be in-process (`MemoryStore`) or backed by a
distributed cache or a database; the authorizer only relies on the three
async operations of the protocol.

`SubStore` pins a namespace prefix and derives entry TTLs from the stored
value, which is how the authorizer scopes tokens to one policy:

    >>> credentials = SubStore(
    ...     MemoryStore(),
    ...     base_namespace=(instance_id, "Credentials"),
    ...     get_ttl=lambda token_set: token_set.expires_in,
    ... )
    >>> await credentials.put(("Threads", "t-1"), "credential", token_set)
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from .utils import get_logger

_logger = get_logger("dedalus_vault.stores")

T = TypeVar("T")

Namespace = tuple[str, ...]


@runtime_checkable
class Store(Protocol):
    """Async namespaced store. ``ttl`` is in seconds; ``None`` means no expiry."""

    async def get(self, namespace: Namespace, key: str) -> Any | None: ...

    async def put(self, namespace: Namespace, key: str, value: Any, *, ttl: float | None = None) -> None: ...

    async def delete(self, namespace: Namespace, key: str) -> None: ...


@dataclass(slots=True)
class _Entry:
    value: Any
    deadline: float | None

    def expired(self, now: float) -> bool:
        return self.deadline is not None and now >= self.deadline


class MemoryStore:
    """In-process store with lazy TTL expiry.

    Entries are checked on read; nothing runs in the background. A lock
    guards the maps so threads sharing one store cannot corrupt each
    other's namespaces.

    Args:
        clock: Monotonic time source in seconds. Injectable for tests.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[Namespace, dict[str, _Entry]] = {}
        self._lock = threading.Lock()

    async def get(self, namespace: Namespace, key: str) -> Any | None:
        namespace = tuple(namespace)
        with self._lock:
            bucket = self._data.get(namespace)
            if bucket is None:
                return None
            entry = bucket.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                self._remove(namespace, key)
                return None
            return entry.value

    async def put(self, namespace: Namespace, key: str, value: Any, *, ttl: float | None = None) -> None:
        namespace = tuple(namespace)
        if ttl is not None and ttl <= 0:
            # Already expired; storing it would only shadow a fresh fetch
            await self.delete(namespace, key)
            return
        deadline = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._data.setdefault(namespace, {})[key] = _Entry(value, deadline)

    async def delete(self, namespace: Namespace, key: str) -> None:
        with self._lock:
            self._remove(tuple(namespace), key)

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for namespace in list(self._data):
                for key, entry in list(self._data[namespace].items()):
                    if entry.expired(now):
                        self._remove(namespace, key)
                        removed += 1
        if removed:
            _logger.debug("purged expired entries", extra={"event": "vault.store.purge", "removed": removed})
        return removed

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for bucket in self._data.values() for entry in bucket.values() if not entry.expired(now))

    def _remove(self, namespace: Namespace, key: str) -> None:
        # Caller holds the lock
        bucket = self._data.get(namespace)
        if bucket is None:
            return
        bucket.pop(key, None)
        if not bucket:
            del self._data[namespace]


class SubStore(Generic[T]):
    """A view of a `Store` under a fixed namespace prefix.

    Args:
        store: Backing store.
        base_namespace: Prefix prepended to every namespace.
        get_ttl: Derives the TTL in seconds from a value on `put`;
            ``None`` stores without expiry.
    """

    def __init__(
        self,
        store: Store,
        *,
        base_namespace: Namespace,
        get_ttl: Callable[[T], float | None] | None = None,
    ) -> None:
        self._store = store
        self._base = tuple(base_namespace)
        self._get_ttl = get_ttl

    @property
    def store(self) -> Store:
        return self._store

    @property
    def base_namespace(self) -> Namespace:
        return self._base

    def namespace(self, namespace: Namespace) -> Namespace:
        return self._base + tuple(namespace)

    async def get(self, namespace: Namespace, key: str) -> T | None:
        return await self._store.get(self.namespace(namespace), key)

    async def put(self, namespace: Namespace, key: str, value: T) -> None:
        ttl = self._get_ttl(value) if self._get_ttl is not None else None
        await self._store.put(self.namespace(namespace), key, value, ttl=ttl)

    async def delete(self, namespace: Namespace, key: str) -> None:
        await self._store.delete(self.namespace(namespace), key)


_default_store: MemoryStore | None = None
_default_store_lock = threading.Lock()


def default_store() -> MemoryStore:
    """Process-wide store used by authorizers that are not given one."""
    global _default_store
    with _default_store_lock:
        if _default_store is None:
            _default_store = MemoryStore()
        return _default_store


__all__ = ["MemoryStore", "Namespace", "Store", "SubStore", "default_store"]
