# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class ProviderAdapter(ABC):
    """
    An interface for calling an AI provider with one specific credential.

    Implementations must raise ProviderError with a structured ErrorKind on
    failure. The orchestrator never looks at vendor error text.
    """

    @abstractmethod
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
        """
        Runs a chat completion and returns the assistant text.

        Args:
            model: Provider-prefixed model identifier.
            api_key: The credential to authenticate with.
            messages: OpenAI-style message list, system prompt first.
            json_mode: Ask the provider for a JSON object response.
        """
        pass

    @abstractmethod
    async def speech(self, model: str, api_key: str, text: str, voice: str) -> bytes:
        """Synthesizes ``text`` and returns the raw audio bytes."""
        pass

    @abstractmethod
    async def image(self, model: str, api_key: str, prompt: str) -> Any:
        """Generates one image and returns the provider's first image record."""
        pass
