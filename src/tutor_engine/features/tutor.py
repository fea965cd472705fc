# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
The user-facing tutor capabilities.

Every method builds a Feature (provider call + parser) and hands it to the
FeatureExecutor, which takes care of admission, retries and metering.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..credential_pool import Credential
from ..fallback_chain import ModelDescriptor
from ..providers import ProviderAdapter
from . import prompts
from .base import Feature, FeatureExecutor
from .models import (
    ChatMessage,
    ExerciseItem,
    GeneratedImage,
    LearnerContext,
    RoleplayReply,
    VocabularyItem,
    VoiceCallSummary,
    parse_audio,
    parse_exercises,
    parse_image,
    parse_roleplay,
    parse_text,
    parse_vocabulary,
    parse_voice_summary,
)

lib_logger = logging.getLogger("tutor_engine")

TEXT_CHAIN = "text"
VOICE_CHAIN = "voice"
SPEECH_CHAIN = "speech"
IMAGE_CHAIN = "image"


class TutorFeatures:
    def __init__(self, executor: FeatureExecutor, provider: ProviderAdapter):
        self._executor = executor
        self._provider = provider

    def _completion(
        self,
        name: str,
        messages: List[Dict[str, str]],
        parse,
        *,
        chain: str = TEXT_CHAIN,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> Feature:
        async def call(model: ModelDescriptor, credential: Credential) -> str:
            return await self._provider.complete(
                model.name,
                credential.secret,
                messages,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=json_mode,
            )

        return Feature(name=name, chain=chain, call=call, parse=parse)

    async def send_chat_turn(
        self,
        user_id: str,
        message: str,
        history: Sequence[ChatMessage],
        learner: LearnerContext,
    ) -> str:
        messages = [{"role": "system", "content": prompts.tutor_system_prompt(learner)}]
        messages += prompts.history_messages(history, prompts.CHAT_HISTORY_WINDOW)
        messages.append({"role": "user", "content": message})
        feature = self._completion("chat_turn", messages, parse_text, temperature=0.7)
        return await self._executor.execute(user_id, feature)

    async def voice_chat_turn(
        self,
        user_id: str,
        message: str,
        history: Sequence[ChatMessage],
        learner: LearnerContext,
    ) -> str:
        """Short spoken-style reply for live voice calls."""
        messages = [{"role": "system", "content": prompts.voice_system_prompt(learner)}]
        messages += prompts.history_messages(history, prompts.VOICE_HISTORY_WINDOW)
        messages.append({"role": "user", "content": message})
        feature = self._completion(
            "voice_chat_turn",
            messages,
            parse_text,
            chain=VOICE_CHAIN,
            temperature=0.5,
            max_tokens=100,
        )
        return await self._executor.execute(user_id, feature)

    async def translate(self, user_id: str, text: str, target_language: str) -> str:
        messages = [
            {"role": "user", "content": prompts.translation_prompt(text, target_language)}
        ]
        feature = self._completion("translate", messages, parse_text)
        return await self._executor.execute(user_id, feature)

    async def summarize(
        self, user_id: str, history: Sequence[ChatMessage], learner: LearnerContext
    ) -> str:
        messages = [{"role": "user", "content": prompts.summary_prompt(history, learner)}]
        feature = self._completion("summarize", messages, parse_text)
        return await self._executor.execute(user_id, feature)

    async def synthesize_speech(
        self, user_id: str, text: str, voice: Optional[str] = None,
        learner: Optional[LearnerContext] = None,
    ) -> bytes:
        clean = prompts.clean_speech_text(text)
        if not clean:
            raise ValueError("Nothing to synthesize after removing markup")
        voice_name = voice or (learner.preferences.voice_name if learner else "Kore")

        async def call(model: ModelDescriptor, credential: Credential) -> bytes:
            return await self._provider.speech(model.name, credential.secret, clean, voice_name)

        feature = Feature(name="synthesize_speech", chain=SPEECH_CHAIN, call=call, parse=parse_audio)
        return await self._executor.execute(user_id, feature)

    async def generate_image(
        self, user_id: str, concept: str, learner: LearnerContext
    ) -> GeneratedImage:
        prompt = prompts.image_prompt(concept, learner)

        async def call(model: ModelDescriptor, credential: Credential):
            return await self._provider.image(model.name, credential.secret, prompt)

        feature = Feature(name="generate_image", chain=IMAGE_CHAIN, call=call, parse=parse_image)
        return await self._executor.execute(user_id, feature)

    async def generate_exercise_set(
        self,
        user_id: str,
        learner: LearnerContext,
        history: Sequence[ChatMessage],
        count: int = 5,
    ) -> List[ExerciseItem]:
        messages = [
            {"role": "user", "content": prompts.exercise_prompt(learner, history, count)}
        ]
        feature = self._completion("exercise_set", messages, parse_exercises, json_mode=True)
        return await self._executor.execute(user_id, feature)

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
        messages = [
            {
                "role": "system",
                "content": prompts.roleplay_system_prompt(scenario, learner, closing),
            }
        ]
        turns = prompts.history_messages(history, prompts.ROLEPLAY_HISTORY_WINDOW)
        if initial and not turns:
            turns.append({"role": "user", "content": prompts.ROLEPLAY_OPENING})
        messages += turns
        feature = self._completion("roleplay_turn", messages, parse_roleplay, json_mode=True)
        return await self._executor.execute(user_id, feature)

    async def extract_vocabulary(
        self, user_id: str, history: Sequence[ChatMessage]
    ) -> List[VocabularyItem]:
        messages = [{"role": "user", "content": prompts.vocabulary_prompt(history)}]
        feature = self._completion("extract_vocabulary", messages, parse_vocabulary, json_mode=True)
        return await self._executor.execute(user_id, feature)

    async def analyze_voice_call(
        self, user_id: str, history: Sequence[ChatMessage]
    ) -> VoiceCallSummary:
        messages = [{"role": "user", "content": prompts.voice_analysis_prompt(history)}]
        feature = self._completion(
            "analyze_voice_call", messages, parse_voice_summary, json_mode=True
        )
        return await self._executor.execute(user_id, feature)
