# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Request execution with credential rotation and model fallback.

The RetryOrchestrator runs one logical request as a bounded loop over the
(model, credential) space. Each failed attempt is classified into an
ErrorAction that decides the next state; the loop can never make more than
models x credentials attempts.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..core.types import (
    AttemptState,
    ErrorAction,
    Exhausted,
    Malformed,
    RequestStats,
    Succeeded,
    TerminalResult,
)
from ..credential_pool import Credential, CredentialPool
from ..errors import ErrorKind, ProviderError, classify_error
from ..failure_logger import log_failure
from ..fallback_chain import ModelDescriptor, ModelFallbackChain

lib_logger = logging.getLogger("tutor_engine")

ProviderCall = Callable[[ModelDescriptor, Credential], Awaitable[Any]]

DEFAULT_ATTEMPT_TIMEOUT = 60.0


def decide_action(kind: ErrorKind, attempts_on_model: int, pool_size: int) -> str:
    """
    Maps a failed attempt to the orchestrator's next move.

    Quota and transient failures try the remaining credentials for the
    current model before giving up on it.
    """
    if kind in (ErrorKind.QUOTA_EXCEEDED, ErrorKind.TRANSIENT):
        if attempts_on_model < pool_size - 1:
            return ErrorAction.ROTATE_CREDENTIAL
        return ErrorAction.ADVANCE_MODEL
    if kind == ErrorKind.MODEL_UNAVAILABLE:
        return ErrorAction.ADVANCE_MODEL
    if kind == ErrorKind.MALFORMED:
        return ErrorAction.MALFORMED
    return ErrorAction.FAIL


class RetryOrchestrator:
    """
    Unified retry/rotation logic for one model chain.

    This class handles:
    - Credential rotation within a model on quota/transient errors
    - Model fallback on unavailable models or exhausted credentials
    - A per-attempt deadline
    - Failure logging for every unsuccessful attempt

    The pool is shared process-wide; the chain's advancement is local to
    each call of run().
    """

    def __init__(
        self,
        pool: CredentialPool,
        chain: ModelFallbackChain,
        *,
        attempt_timeout: Optional[float] = DEFAULT_ATTEMPT_TIMEOUT,
        retry_delay: float = 0.0,
    ):
        """
        Args:
            pool: Shared credential pool
            chain: Model fallback chain this orchestrator walks
            attempt_timeout: Seconds before a single provider call is
                abandoned and treated as transient. None disables it.
            retry_delay: Pause between consecutive attempts in seconds
        """
        self._pool = pool
        self._chain = chain
        self._attempt_timeout = attempt_timeout
        self._retry_delay = retry_delay

    @property
    def max_attempts(self) -> int:
        return len(self._chain) * self._pool.size()

    async def _attempt(
        self, call: ProviderCall, model: ModelDescriptor, credential: Credential
    ) -> Any:
        if self._attempt_timeout is None:
            return await call(model, credential)
        return await asyncio.wait_for(call(model, credential), timeout=self._attempt_timeout)

    async def run(self, call: ProviderCall, *, feature: Optional[str] = None) -> TerminalResult:
        """
        Executes ``call`` until it succeeds or every option is exhausted.

        asyncio.CancelledError raised by the caller propagates immediately.

        Returns:
            Succeeded, Exhausted or Malformed
        """
        pool_size = self._pool.size()
        cursor = self._chain.cursor()
        start = self._pool.cursor
        state = AttemptState(model_index=cursor.index, credential_index=start)
        stats = RequestStats()
        last_error: Optional[ProviderError] = None

        for attempt in range(1, self.max_attempts + 1):
            model = cursor.active()
            credential = self._pool.get(state.credential_index)
            stats.attempts = attempt

            try:
                value = await self._attempt(call, model, credential)
            except asyncio.TimeoutError as e:
                error = ProviderError(
                    ErrorKind.TRANSIENT,
                    f"Attempt exceeded {self._attempt_timeout}s deadline",
                    original_exception=e,
                )
            except Exception as e:
                error = classify_error(e)
            else:
                if stats.attempts > 1:
                    lib_logger.info(
                        f"{feature or 'request'} succeeded on {model.name} with "
                        f"{credential.display} after {stats.attempts} attempts"
                    )
                return Succeeded(value=value, model=model, credential=credential, stats=stats)

            last_error = error
            log_failure(credential.secret, model.name, attempt, error, feature=feature)
            action = decide_action(error.kind, state.attempts_on_model, pool_size)

            if action == ErrorAction.MALFORMED:
                return Malformed(error=error, model=model, credential=credential, stats=stats)
            if action == ErrorAction.FAIL:
                lib_logger.error(f"Non-retryable error on {model.name}: {error}")
                return Exhausted(last_error=error, stats=stats)

            if action == ErrorAction.ROTATE_CREDENTIAL:
                await self._pool.rotate()
                state.credential_index = (state.credential_index + 1) % pool_size
                state.attempts_on_model += 1
                stats.rotations += 1
            else:
                next_model = cursor.advance()
                if next_model is None:
                    break
                lib_logger.warning(
                    f"Falling back from {model.name} to {next_model.name} ({error.kind.value})"
                )
                state = AttemptState(model_index=cursor.index, credential_index=start)
                stats.model_advances += 1

            if self._retry_delay > 0:
                await asyncio.sleep(self._retry_delay)

        lib_logger.error(
            f"All {stats.attempts} attempt(s) failed for {feature or 'request'} "
            f"on chain '{self._chain.name}'"
        )
        return Exhausted(last_error=last_error, stats=stats)
