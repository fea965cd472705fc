# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
TutorClient facade.

Wires the credential pool, model chains, usage gate and orchestrators
together and exposes one async method per tutor feature:
- RetryOrchestrator: rotation and fallback, one per model chain
- UsageGate: admission and metering
- TutorFeatures: prompt building and response parsing
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..config import Settings
from ..credential_pool import CredentialPool
from ..db import get_database_url, init_db_runtime
from ..failure_logger import configure_failure_logger
from ..fallback_chain import ModelFallbackChain
from ..features import (
    IMAGE_CHAIN,
    SPEECH_CHAIN,
    TEXT_CHAIN,
    VOICE_CHAIN,
    ChatMessage,
    ExerciseItem,
    FeatureExecutor,
    GeneratedImage,
    LearnerContext,
    RoleplayReply,
    TutorFeatures,
    VocabularyItem,
    VoiceCallSummary,
)
from ..providers import LiteLLMProvider, ProviderAdapter
from ..usage_gate import UsageGate
from .executor import RetryOrchestrator

lib_logger = logging.getLogger("tutor_engine")


class TutorClient:
    """
    The single entry point the UI layer talks to.

    Every feature method either returns a typed result or raises one of
    InsufficientCredits, AccountUnavailable, ProviderExhausted or
    MalformedResponse.
    """

    def __init__(
        self,
        settings: Settings,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        provider: Optional[ProviderAdapter] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        if settings.log_dir:
            configure_failure_logger(settings.log_dir)

        self.settings = settings
        self.pool = CredentialPool(settings.api_keys)
        self.chains: Dict[str, ModelFallbackChain] = {
            TEXT_CHAIN: ModelFallbackChain(
                settings.text_models, primary=settings.active_model, name=TEXT_CHAIN
            ),
            VOICE_CHAIN: ModelFallbackChain(settings.voice_models, name=VOICE_CHAIN),
            SPEECH_CHAIN: ModelFallbackChain(settings.speech_models, name=SPEECH_CHAIN),
            IMAGE_CHAIN: ModelFallbackChain(settings.image_models, name=IMAGE_CHAIN),
        }
        self.orchestrators: Dict[str, RetryOrchestrator] = {
            name: RetryOrchestrator(
                self.pool,
                chain,
                attempt_timeout=settings.attempt_timeout,
                retry_delay=settings.retry_delay or 0.0,
            )
            for name, chain in self.chains.items()
        }
        self.gate = UsageGate(
            session_maker, free_weekly_requests=settings.free_weekly_requests
        )
        self.provider = provider or LiteLLMProvider()
        self.features = TutorFeatures(
            FeatureExecutor(self.gate, self.orchestrators), self.provider
        )
        self._engine = engine

    @classmethod
    async def create(
        cls,
        settings: Optional[Settings] = None,
        *,
        root_dir: Optional[Path] = None,
        provider: Optional[ProviderAdapter] = None,
    ) -> "TutorClient":
        """Builds a client from settings (or the environment) with its own ledger engine."""
        settings = settings or Settings.from_env()
        database_url = settings.database_url or get_database_url(root_dir or Path.cwd())
        engine, session_maker = await init_db_runtime(database_url)
        return cls(settings, session_maker, provider=provider, engine=engine)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def __aenter__(self) -> "TutorClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def set_active_model(self, model: str) -> None:
        """Changes the primary text model; fallbacks keep their order."""
        self.chains[TEXT_CHAIN].set_primary(model)
        lib_logger.info(f"Active text model set to {model}")

    # --- Features ---

    async def send_chat_turn(
        self, user_id: str, message: str, history: Sequence[ChatMessage], learner: LearnerContext
    ) -> str:
        return await self.features.send_chat_turn(user_id, message, history, learner)

    async def voice_chat_turn(
        self, user_id: str, message: str, history: Sequence[ChatMessage], learner: LearnerContext
    ) -> str:
        return await self.features.voice_chat_turn(user_id, message, history, learner)

    async def translate(self, user_id: str, text: str, target_language: str) -> str:
        return await self.features.translate(user_id, text, target_language)

    async def summarize(
        self, user_id: str, history: Sequence[ChatMessage], learner: LearnerContext
    ) -> str:
        return await self.features.summarize(user_id, history, learner)

    async def synthesize_speech(
        self, user_id: str, text: str, voice: Optional[str] = None,
        learner: Optional[LearnerContext] = None,
    ) -> bytes:
        return await self.features.synthesize_speech(user_id, text, voice, learner)

    async def generate_image(
        self, user_id: str, concept: str, learner: LearnerContext
    ) -> GeneratedImage:
        return await self.features.generate_image(user_id, concept, learner)

    async def generate_exercise_set(
        self, user_id: str, learner: LearnerContext, history: Sequence[ChatMessage], count: int = 5
    ) -> List[ExerciseItem]:
        return await self.features.generate_exercise_set(user_id, learner, history, count)

    async def roleplay_turn(
        self,
        user_id: str,
        history: Sequence[ChatMessage],
        scenario: str,
        learner: LearnerContext,
        *,
        closing: bool = False,
        initial: bool = False,
    ) -> RoleplayReply:
        return await self.features.roleplay_turn(
            user_id, history, scenario, learner, closing=closing, initial=initial
        )

    async def extract_vocabulary(
        self, user_id: str, history: Sequence[ChatMessage]
    ) -> List[VocabularyItem]:
        return await self.features.extract_vocabulary(user_id, history)

    async def analyze_voice_call(
        self, user_id: str, history: Sequence[ChatMessage]
    ) -> VoiceCallSummary:
        return await self.features.analyze_voice_call(user_id, history)
