# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .types import (
    AttemptState,
    ErrorAction,
    Exhausted,
    Malformed,
    RequestStats,
    Succeeded,
    TerminalResult,
)

__all__ = [
    "AttemptState",
    "ErrorAction",
    "Exhausted",
    "Malformed",
    "RequestStats",
    "Succeeded",
    "TerminalResult",
]
