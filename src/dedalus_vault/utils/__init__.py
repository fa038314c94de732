# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Utility helpers for dedalus_vault."""

from .logger import ColoredFormatter, JsonFormatter, configure_logging, get_logger, setup_logger

__all__ = ["ColoredFormatter", "JsonFormatter", "configure_logging", "get_logger", "setup_logger"]
