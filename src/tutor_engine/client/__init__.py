# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .executor import RetryOrchestrator, decide_action

__all__ = ["RetryOrchestrator", "decide_action"]
