# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the orchestration engine.

This module contains the per-request attempt state and the terminal
results the RetryOrchestrator hands back to feature executors.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from ..credential_pool import Credential
from ..errors import ProviderError
from ..fallback_chain import ModelDescriptor


# =============================================================================
# ATTEMPT STATE
# =============================================================================


@dataclass
class AttemptState:
    """
    Position of one logical request in the (model, credential) space.

    Created fresh for every request and discarded when it completes.
    """

    model_index: int
    credential_index: int
    attempts_on_model: int = 0


@dataclass
class RequestStats:
    """Counters describing how much work one logical request needed."""

    attempts: int = 0
    rotations: int = 0
    model_advances: int = 0


# =============================================================================
# TERMINAL RESULTS
# =============================================================================


@dataclass
class Succeeded:
    value: Any
    model: ModelDescriptor
    credential: Credential
    stats: RequestStats


@dataclass
class Exhausted:
    last_error: Optional[ProviderError]
    stats: RequestStats


@dataclass
class Malformed:
    """The provider answered but the payload could not be interpreted."""

    error: ProviderError
    model: ModelDescriptor
    credential: Credential
    stats: RequestStats


TerminalResult = Union[Succeeded, Exhausted, Malformed]


# =============================================================================
# ERROR ACTION ENUM
# =============================================================================


class ErrorAction:
    """
    Actions to take after a failed attempt.

    Used by RetryOrchestrator to determine the next state.
    """

    ROTATE_CREDENTIAL = "rotate_credential"  # Same model, next credential
    ADVANCE_MODEL = "advance_model"  # Next model, first credential
    FAIL = "fail"  # Stop without further attempts
    MALFORMED = "malformed"  # Stop, the provider did answer
