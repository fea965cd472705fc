# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error taxonomy and provider error classification.

Provider failures are classified by exception type into an ErrorKind.
Only the caller-facing exceptions (InsufficientCredits, AccountUnavailable,
ProviderExhausted, MalformedResponse) ever leave a feature executor.
"""

import asyncio
from enum import Enum
from typing import Optional

import httpx
from litellm.exceptions import (
    APIConnectionError,
    InternalServerError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)


class ErrorKind(str, Enum):
    """Structured classification of a failed provider attempt."""

    QUOTA_EXCEEDED = "quota_exceeded"
    MODEL_UNAVAILABLE = "model_unavailable"
    TRANSIENT = "transient"
    FATAL = "fatal"
    MALFORMED = "malformed"


class TutorEngineError(Exception):
    """Base class for every error raised by tutor_engine."""

    user_message = "Something went wrong. Please try again."


class ConfigurationError(TutorEngineError):
    """Raised at startup when the engine cannot possibly serve a request."""


class InsufficientCredits(TutorEngineError):
    user_message = "You have no credits left. Please recharge your balance."


class AccountUnavailable(TutorEngineError):
    user_message = "Your account could not be loaded. Please sign in again."


class ProviderExhausted(TutorEngineError):
    user_message = "The service is temporarily unavailable. Please retry later."


class MalformedResponse(TutorEngineError):
    user_message = "The tutor sent an unreadable answer. Please try again."


class ProviderError(TutorEngineError):
    """
    A single failed provider attempt.

    Adapters raise this with a structured kind so the orchestrator never
    has to inspect vendor error text.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str = "",
        original_exception: Optional[BaseException] = None,
    ):
        super().__init__(message or kind.value)
        self.kind = kind
        self.original_exception = original_exception

    @property
    def is_retryable(self) -> bool:
        return self.kind in (
            ErrorKind.QUOTA_EXCEEDED,
            ErrorKind.TRANSIENT,
            ErrorKind.MODEL_UNAVAILABLE,
        )


def is_rate_limit_error(e: BaseException) -> bool:
    """Checks if the exception is a rate limit error."""
    return isinstance(e, RateLimitError)


def is_server_error(e: BaseException) -> bool:
    """Checks if the exception is a temporary server-side or network error."""
    return isinstance(
        e,
        (
            ServiceUnavailableError,
            InternalServerError,
            APIConnectionError,
            Timeout,
            httpx.TimeoutException,
            httpx.TransportError,
            asyncio.TimeoutError,
        ),
    )


def is_model_unavailable_error(e: BaseException) -> bool:
    """Checks if the provider reported the model as missing or removed."""
    return isinstance(e, NotFoundError)


def classify_error(e: BaseException) -> ProviderError:
    """
    Maps any exception raised by a provider call to a ProviderError.

    ProviderError instances pass through unchanged. Unknown exception types
    are FATAL so that integration bugs surface instead of being retried.
    """
    if isinstance(e, ProviderError):
        return e
    if is_rate_limit_error(e):
        kind = ErrorKind.QUOTA_EXCEEDED
    elif is_model_unavailable_error(e):
        kind = ErrorKind.MODEL_UNAVAILABLE
    elif is_server_error(e):
        kind = ErrorKind.TRANSIENT
    else:
        # authentication, invalid request, content policy, unknown
        kind = ErrorKind.FATAL
    return ProviderError(kind, f"{type(e).__name__}: {e}", original_exception=e)
