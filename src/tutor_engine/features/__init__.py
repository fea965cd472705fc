# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .base import Feature, FeatureExecutor
from .models import (
    ChatMessage,
    ExerciseItem,
    GeneratedImage,
    LearnerContext,
    RoleplayReply,
    UserPreferences,
    VocabularyItem,
    VoiceCallSummary,
)
from .tutor import IMAGE_CHAIN, SPEECH_CHAIN, TEXT_CHAIN, VOICE_CHAIN, TutorFeatures

__all__ = [
    "Feature",
    "FeatureExecutor",
    "TutorFeatures",
    "ChatMessage",
    "ExerciseItem",
    "GeneratedImage",
    "LearnerContext",
    "RoleplayReply",
    "UserPreferences",
    "VocabularyItem",
    "VoiceCallSummary",
    "TEXT_CHAIN",
    "VOICE_CHAIN",
    "SPEECH_CHAIN",
    "IMAGE_CHAIN",
]
