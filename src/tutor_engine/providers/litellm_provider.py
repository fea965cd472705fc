# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import logging
import os
from typing import Any, Dict, List, Optional

import litellm

from ..errors import ErrorKind, ProviderError, classify_error
from .provider_interface import ProviderAdapter

lib_logger = logging.getLogger("tutor_engine")


class LiteLLMProvider(ProviderAdapter):
    """
    Provider adapter backed by LiteLLM.

    Every LiteLLM exception is converted to a ProviderError by type, so
    the same adapter works for any provider LiteLLM supports.
    """

    def __init__(self, request_timeout: Optional[float] = None):
        os.environ["LITELLM_LOG"] = "ERROR"
        litellm.set_verbose = False
        litellm.drop_params = True
        self._request_timeout = request_timeout

    async def complete(
        self,
        model: str,
        api_key: str,
        messages: List[Dict[str, str]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> str:
        kwargs: Dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if self._request_timeout is not None:
            kwargs["timeout"] = self._request_timeout

        try:
            response = await litellm.acompletion(
                model=model, messages=messages, api_key=api_key, num_retries=0, **kwargs
            )
        except Exception as e:
            raise classify_error(e) from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise ProviderError(
                ErrorKind.MALFORMED, f"{model} returned a completion without text"
            )
        return content

    async def speech(self, model: str, api_key: str, text: str, voice: str) -> bytes:
        try:
            response = await litellm.aspeech(
                model=model, input=text, voice=voice, api_key=api_key
            )
        except Exception as e:
            raise classify_error(e) from e

        audio = getattr(response, "content", None)
        if not audio:
            raise ProviderError(ErrorKind.MALFORMED, f"{model} returned no audio")
        return audio

    async def image(self, model: str, api_key: str, prompt: str) -> Any:
        try:
            response = await litellm.aimage_generation(
                prompt=prompt, model=model, api_key=api_key, n=1
            )
        except Exception as e:
            raise classify_error(e) from e

        data = getattr(response, "data", None) or []
        if not data:
            raise ProviderError(ErrorKind.MALFORMED, f"{model} returned no image")
        return data[0]
