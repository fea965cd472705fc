# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Prompt templates for the tutor features."""

import json
from typing import Dict, List, Sequence

from .models import ChatMessage, LearnerContext

TOTAL_LESSONS_PER_LEVEL = 50
CHAT_HISTORY_WINDOW = 8
VOICE_HISTORY_WINDOW = 4
ROLEPLAY_HISTORY_WINDOW = 10
MAX_SPEECH_CHARS = 1000

NO_CODE_RULE = (
    "Never send code blocks (triple backticks). "
    "Answer only in clear, teaching-oriented prose."
)


def tutor_system_prompt(learner: LearnerContext) -> str:
    prefs = learner.preferences
    next_lesson = learner.last_lesson + 1
    progress = round(learner.last_lesson / TOTAL_LESSONS_PER_LEVEL * 100)
    weak_points = ", ".join(learner.weak_points) or "none detected yet"
    low_credits = learner.credits < 3 and not learner.is_admin

    lines = [
        "You are TeacherMada, an expert and empathetic language teacher.",
        f"Your student is called {learner.username}.",
        "",
        "STUDENT DATA:",
        f"- Target language: {prefs.target_language}",
        f"- Current level: {prefs.level} (progress: {progress}%)",
        f"- Last completed lesson: {learner.last_lesson}",
        f"- Next lesson: {next_lesson}",
        f"- Weak points: {weak_points}. Reinforce them subtly in your examples.",
        f"- Explanations are given in {prefs.explanation_language}.",
        f"- Learning mode: {prefs.mode}",
    ]
    if low_credits:
        lines.append("- The student has few credits left: keep each lesson dense and complete.")
    lines += [
        "",
        f'If the student asks to start or continue, teach LESSON {next_lesson}. Never skip a number.',
        f"If the student goes off topic, answer, then offer to return to LESSON {next_lesson}.",
        "",
        NO_CODE_RULE,
    ]
    return "\n".join(lines)


def history_messages(history: Sequence[ChatMessage], window: int) -> List[Dict[str, str]]:
    """Converts the last ``window`` chat messages to provider roles."""
    messages = []
    for message in list(history)[-window:]:
        role = "assistant" if message.role == "model" else "user"
        messages.append({"role": role, "content": message.text})
    return messages


def voice_system_prompt(learner: LearnerContext) -> str:
    return (
        "You are TeacherMada on a VOICE CALL. Reply in one or two short sentences. "
        "No lists, no markdown, never any code. "
        f"Language: {learner.preferences.target_language}."
    )


def translation_prompt(text: str, target_language: str) -> str:
    return f'Translate to {target_language}, text only: "{text}"'


def summary_prompt(history: Sequence[ChatMessage], learner: LearnerContext) -> str:
    transcript = "\n".join(f"{m.role}: {m.text}" for m in history)
    return (
        f"Summarise this {learner.preferences.target_language} lesson for the student "
        f"in {learner.preferences.explanation_language}. List the key points, the new "
        "vocabulary and one thing to review next time.\n\n"
        f"Lesson:\n{transcript}"
    )


def exercise_prompt(learner: LearnerContext, history: Sequence[ChatMessage], count: int) -> str:
    context = "\n".join(m.text for m in list(history)[-6:])
    return (
        f"Create {count} exercises in {learner.preferences.target_language} for a "
        f"{learner.preferences.level} student. Mix the types multiple_choice, "
        "true_false and fill_blank. Reply with JSON: "
        '{"exercises": [{"type", "question", "options", "correctAnswer", "explanation"}]}. '
        f"Base them on this recent lesson:\n{context}"
    )


def roleplay_system_prompt(
    scenario: str, learner: LearnerContext, closing: bool
) -> str:
    instruction = (
        "Review the conversation so far and give a score out of 20 with constructive feedback."
        if closing
        else "Continue the dialogue naturally and correct the student's mistakes."
    )
    return (
        "You are TeacherMada, an expert conversation partner.\n"
        f"Current scenario: {scenario}.\n"
        f"Target language: {learner.preferences.target_language}.\n"
        f"Student level: {learner.preferences.level}.\n"
        f"{instruction}\n"
        'Reply with JSON: {"aiReply", "correction", "explanation", "score", "feedback"}; '
        "only aiReply is required."
    )


ROLEPLAY_OPENING = "Hello, let's start the scenario."


def vocabulary_prompt(history: Sequence[ChatMessage]) -> str:
    context = "\n".join(m.text for m in list(history)[-6:])
    return (
        "Extract 3 to 5 key words or expressions from this conversation for a "
        'learning dictionary. Reply with JSON: {"items": [{"word", "translation", "example"}]}.\n'
        f"Context: {context}"
    )


def voice_analysis_prompt(history: Sequence[ChatMessage]) -> str:
    recent = [m.model_dump() for m in list(history)[-6:]]
    return (
        'Analyse this spoken practice session. Reply with JSON: {"score", "feedback", "tip"} '
        f"where score is out of 10. Conversation: {json.dumps(recent, ensure_ascii=False)}"
    )


def image_prompt(concept: str, learner: LearnerContext) -> str:
    return (
        f"A clear, friendly educational illustration of '{concept}' for a "
        f"{learner.preferences.target_language} learner. No text in the image."
    )


def clean_speech_text(text: str) -> str:
    """Strips markdown symbols the speech engine would read aloud."""
    return text.translate(str.maketrans("", "", "*#_`~")).strip()[:MAX_SPEECH_CHARS]
