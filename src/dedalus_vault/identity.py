# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Stable fingerprints of authorizer policies.

The instance id namespaces the credential cache so two authorizers with
different connections or scopes never read each other's tokens, even when
they share a backing store. It covers only the policy: token accessors,
login hints, stores and the client secret are left out, so the id is the
same across process restarts for the same logical configuration.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .config import Auth0ClientParams, TokenVaultAuthorizerParams
from .exceptions import AuthConfigError

_EXCLUDED_PARAMS = frozenset({"store", "refresh_token", "access_token", "login_hint"})


def _canonical(value: Any) -> Any:
    """Reduce ``value`` to JSON-encodable data with a deterministic layout."""
    if isinstance(value, Enum):
        return _canonical(value.value)
    if isinstance(value, Mapping):
        return {str(key): _canonical(item) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        items = [_canonical(item) for item in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))
    if isinstance(value, (list, tuple)):
        return [_canonical(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    raise TypeError(f"cannot fingerprint value of type {type(value).__name__}")


def stable_hash(value: Any) -> str:
    """Canonical JSON string for ``value``; mapping keys and set members are ordered."""
    return json.dumps(_canonical(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def policy_fields(params: TokenVaultAuthorizerParams) -> dict[str, Any]:
    """The parts of a policy that participate in the instance id."""
    policy = {
        name: getattr(params, name)
        for name in params.__dataclass_fields__
        if name not in _EXCLUDED_PARAMS
    }
    policy["scopes"] = frozenset(params.scopes)
    return policy


def instance_id(auth0: Auth0ClientParams, params: TokenVaultAuthorizerParams) -> str:
    """MD5 hex digest of the client identity and policy (32 characters)."""
    props = {
        "auth0": {"domain": auth0.domain, "client_id": auth0.client_id},
        "params": policy_fields(params),
    }
    try:
        canonical = stable_hash(props)
    except TypeError as exc:
        raise AuthConfigError(f"authorization_params must be JSON-compatible: {exc}") from exc
    return hashlib.md5(canonical.encode("utf-8"), usedforsecurity=False).hexdigest()


__all__ = ["instance_id", "policy_fields", "stable_hash"]
