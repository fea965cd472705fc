# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Typed inputs and results for tutor features, plus their response parsers.

Parsers raise on anything they cannot interpret; the feature executor turns
that into MalformedResponse.
"""

import base64
import json
import re
import time
import uuid
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ChatMessage(_CamelModel):
    role: Literal["user", "model"]
    text: str


class UserPreferences(_CamelModel):
    target_language: str = Field(alias="targetLanguage")
    level: str
    explanation_language: str = Field(default="French", alias="explanationLanguage")
    mode: str = "Chat"
    voice_name: str = Field(default="Kore", alias="voiceName")


class LearnerContext(_CamelModel):
    """What the tutor knows about the learner when building its prompt."""

    username: str
    preferences: UserPreferences
    credits: int = 0
    is_admin: bool = False
    last_lesson: int = Field(default=0, alias="lastLesson")
    weak_points: List[str] = Field(default_factory=list, alias="weakPoints")


class ExerciseItem(_CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: Literal["multiple_choice", "true_false", "fill_blank"]
    question: str
    options: Optional[List[str]] = None
    correct_answer: str = Field(alias="correctAnswer")
    explanation: str = ""


class RoleplayReply(_CamelModel):
    ai_reply: str = Field(alias="aiReply")
    correction: Optional[str] = None
    explanation: Optional[str] = None
    score: Optional[float] = None
    feedback: Optional[str] = None


class VocabularyItem(_CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    word: str
    translation: str
    example: Optional[str] = None
    mastered: bool = False
    added_at: int = Field(default_factory=lambda: int(time.time() * 1000), alias="addedAt")


class VoiceCallSummary(_CamelModel):
    score: float
    feedback: str
    tip: str


class GeneratedImage(_CamelModel):
    url: Optional[str] = None
    b64_json: Optional[str] = None
    revised_prompt: Optional[str] = None

    @model_validator(mode="after")
    def _has_payload(self) -> "GeneratedImage":
        if not self.url and not self.b64_json:
            raise ValueError("image record carries neither a url nor base64 data")
        return self

    def image_bytes(self) -> Optional[bytes]:
        if self.b64_json is None:
            return None
        return base64.b64decode(self.b64_json)


# =============================================================================
# PARSERS
# =============================================================================


def load_json_text(text: str) -> Any:
    """Parses model output as JSON, tolerating a surrounding code fence."""
    return json.loads(_CODE_FENCE.sub("", text.strip()))


def parse_text(raw: str) -> str:
    text = raw.strip()
    if not text:
        raise ValueError("empty text response")
    return text


def _unwrap_list(data: Any, key: str) -> List[Any]:
    # JSON mode forces an object at the top level, so lists arrive wrapped
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, list):
        raise ValueError(f"expected a list of {key}")
    return data


def parse_exercises(raw: str) -> List[ExerciseItem]:
    items = _unwrap_list(load_json_text(raw), "exercises")
    return [ExerciseItem.model_validate(item) for item in items]


def parse_vocabulary(raw: str) -> List[VocabularyItem]:
    items = _unwrap_list(load_json_text(raw), "items")
    return [VocabularyItem.model_validate(item) for item in items]


def parse_roleplay(raw: str) -> RoleplayReply:
    return RoleplayReply.model_validate(load_json_text(raw))


def parse_voice_summary(raw: str) -> VoiceCallSummary:
    return VoiceCallSummary.model_validate(load_json_text(raw))


def parse_image(raw: Any) -> GeneratedImage:
    if isinstance(raw, dict):
        return GeneratedImage.model_validate(raw)
    return GeneratedImage(
        url=getattr(raw, "url", None),
        b64_json=getattr(raw, "b64_json", None),
        revised_prompt=getattr(raw, "revised_prompt", None),
    )


def parse_audio(raw: bytes) -> bytes:
    if not raw:
        raise ValueError("empty audio response")
    return bytes(raw)
