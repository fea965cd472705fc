import asyncio

import httpx
import litellm
import pytest

from tutor_engine.errors import (
    ErrorKind,
    InsufficientCredits,
    ProviderError,
    ProviderExhausted,
    classify_error,
)


@pytest.mark.parametrize(
    "exc, kind",
    [
        (
            litellm.RateLimitError(message="429 quota", llm_provider="gemini", model="m"),
            ErrorKind.QUOTA_EXCEEDED,
        ),
        (
            litellm.NotFoundError(message="model not found", model="m", llm_provider="gemini"),
            ErrorKind.MODEL_UNAVAILABLE,
        ),
        (
            litellm.ServiceUnavailableError(message="503", llm_provider="gemini", model="m"),
            ErrorKind.TRANSIENT,
        ),
        (
            litellm.APIConnectionError(message="network down", llm_provider="gemini", model="m"),
            ErrorKind.TRANSIENT,
        ),
        (httpx.ConnectTimeout("timed out"), ErrorKind.TRANSIENT),
        (asyncio.TimeoutError(), ErrorKind.TRANSIENT),
        (
            litellm.AuthenticationError(message="bad key", llm_provider="gemini", model="m"),
            ErrorKind.FATAL,
        ),
        (RuntimeError("unexpected"), ErrorKind.FATAL),
    ],
)
def test_classify_error_uses_exception_type(exc, kind) -> None:
    error = classify_error(exc)

    assert error.kind == kind
    assert error.original_exception is exc


def test_message_text_does_not_drive_classification() -> None:
    # Contains "429" and "quota" but is not a rate limit error type
    error = classify_error(ValueError("429 quota exceeded"))

    assert error.kind == ErrorKind.FATAL


def test_provider_error_passes_through() -> None:
    original = ProviderError(ErrorKind.MALFORMED, "no text")

    assert classify_error(original) is original
    assert original.is_retryable is False
    assert ProviderError(ErrorKind.TRANSIENT).is_retryable is True


def test_user_messages_are_distinct() -> None:
    assert "recharge" in InsufficientCredits.user_message
    assert "retry later" in ProviderExhausted.user_message
