# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Shared fixtures for Token Vault tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from dedalus_vault.stores import MemoryStore, default_store
from tests.helpers import FakeClock


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer AUTH0_* variables out of the tests."""
    for name in ("AUTH0_DOMAIN", "AUTH0_CLIENT_ID", "AUTH0_CLIENT_SECRET"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _fresh_default_store() -> Iterator[None]:
    """Empty the process-wide credential store around every test."""
    default_store().clear()
    yield
    default_store().clear()


@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock starting at a fixed timestamp."""
    return FakeClock(now=1700000000.0)


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)
