# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Feature executor: admission, orchestration, metering and parsing.

A Feature pairs a provider-call closure with a response parser. The
executor reserves the request's charge before any provider call and keeps
it only when a provider actually delivered a response.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, TypeVar

from ..client.executor import RetryOrchestrator
from ..core.types import Exhausted, Malformed, Succeeded
from ..credential_pool import Credential
from ..errors import MalformedResponse, ProviderExhausted
from ..fallback_chain import ModelDescriptor
from ..usage_gate import UsageGate

lib_logger = logging.getLogger("tutor_engine")

T = TypeVar("T")


@dataclass(frozen=True)
class Feature(Generic[T]):
    name: str
    chain: str
    call: Callable[[ModelDescriptor, Credential], Awaitable[Any]]
    parse: Callable[[Any], T]


class FeatureExecutor:
    """Runs Features for a user against the orchestrator of their chain."""

    def __init__(self, gate: UsageGate, orchestrators: Dict[str, RetryOrchestrator]):
        self._gate = gate
        self._orchestrators = orchestrators

    async def execute(self, user_id: str, feature: Feature[T]) -> T:
        orchestrator = self._orchestrators.get(feature.chain)
        if orchestrator is None:
            raise KeyError(f"No model chain configured for '{feature.chain}'")

        # Raises InsufficientCredits / AccountUnavailable before any network call
        reservation = await self._gate.reserve(user_id)

        delivered = False
        try:
            result = await orchestrator.run(feature.call, feature=feature.name)
            if isinstance(result, Exhausted):
                raise ProviderExhausted(
                    f"{feature.name} failed after {result.stats.attempts} attempt(s)"
                ) from result.last_error
            delivered = True
        finally:
            if not delivered:
                # Must complete even when the caller cancelled us
                await asyncio.shield(self._gate.refund(reservation))

        if isinstance(result, Malformed):
            raise MalformedResponse(
                f"{feature.name}: {result.model.name} sent an unusable response"
            ) from result.error
        if not isinstance(result, Succeeded):
            raise TypeError(f"Unexpected orchestrator result: {result!r}")

        try:
            return feature.parse(result.value)
        except Exception as e:
            lib_logger.error(
                f"Could not parse {feature.name} response from {result.model.name}: {e}"
            )
            raise MalformedResponse(
                f"{feature.name}: response from {result.model.name} could not be parsed"
            ) from e
