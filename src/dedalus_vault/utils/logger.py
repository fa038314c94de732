# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Logging helpers for dedalus_vault.

Library modules obtain loggers through `get_logger` and attach structured
fields via ``extra={"event": ...}``. Applications opt into output with
`setup_logger`; the library never installs handlers on import.

Example:
    >>> from dedalus_vault.utils import get_logger, setup_logger
    >>> setup_logger(level=logging.DEBUG)
    >>> log = get_logger(__name__)
    >>> log.info("cache miss", extra={"event": "vault.cache.miss"})
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from typing import Any, ClassVar

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "asctime"}
)

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed through ``extra=`` on the logging call."""
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name for terminal output.

    Subclass and override ``LEVEL_COLORS`` for a different palette.
    """

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[1;31m",  # Bold red
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None, *, show_extras: bool = True) -> None:
        super().__init__(fmt or DEFAULT_FORMAT, datefmt)
        self._show_extras = show_extras

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        color = self.LEVEL_COLORS.get(original)
        if color:
            record.levelname = f"{color}{original}{self.RESET}"
        try:
            rendered = super().format(record)
        finally:
            record.levelname = original

        if self._show_extras:
            extras = _record_extras(record)
            if extras:
                rendered += " " + " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        return rendered


class JsonFormatter(logging.Formatter):
    """One JSON object per record, structured ``extra`` fields included."""

    def __init__(
        self,
        *,
        serializer: Callable[[dict[str, Any]], str] | None = None,
        payload_transformer: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
    ) -> None:
        super().__init__()
        self._serializer = serializer or (lambda payload: json.dumps(payload, default=str, separators=(",", ":")))
        self._transform = payload_transformer

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": record.created,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = _record_extras(record)
        if extras:
            payload["context"] = extras
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if self._transform is not None:
            payload = self._transform(payload)
        return self._serializer(payload).rstrip("\n")


def get_logger(name: str) -> logging.Logger:
    """Return a logger; names outside the package are nested under it."""
    if name != "dedalus_vault" and not name.startswith("dedalus_vault."):
        name = f"dedalus_vault.{name}"
    return logging.getLogger(name)


def setup_logger(
    *,
    level: int | str = logging.INFO,
    use_json: bool = False,
    json_serializer: Callable[[dict[str, Any]], str] | None = None,
    payload_transformer: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
    stream: Any = None,
    force: bool = False,
) -> logging.Handler:
    """Install a single root handler.

    Args:
        level: Root log level.
        use_json: Emit JSON lines instead of coloured text.
        json_serializer: Custom encoder for JSON payloads (e.g. orjson).
        payload_transformer: Hook to reshape JSON payloads before encoding.
        stream: Output stream, defaults to stderr.
        force: Replace handlers that are already installed on the root logger.

    Returns:
        The installed handler.
    """
    root = logging.getLogger()
    if force:
        for existing in list(root.handlers):
            root.removeHandler(existing)
            existing.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    if use_json:
        handler.setFormatter(JsonFormatter(serializer=json_serializer, payload_transformer=payload_transformer))
    else:
        handler.setFormatter(ColoredFormatter())

    root.addHandler(handler)
    root.setLevel(level)
    return handler


def configure_logging(level: int | str = logging.INFO) -> logging.Handler:
    """Convenience wrapper for scripts: coloured output, replacing prior handlers."""
    return setup_logger(level=level, force=True)


__all__ = ["ColoredFormatter", "JsonFormatter", "configure_logging", "get_logger", "setup_logger"]
