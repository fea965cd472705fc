# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

lib_logger = logging.getLogger("tutor_engine")

DEFAULT_TEXT_MODELS = [
    "gemini/gemini-3-flash-preview",
    "gemini/gemini-flash-lite-latest",
    "gemini/gemini-1.5-flash",
]
DEFAULT_VOICE_MODELS = ["gemini/gemini-flash-lite-latest", "gemini/gemini-1.5-flash"]
DEFAULT_SPEECH_MODELS = ["gemini/gemini-2.5-flash-preview-tts"]
DEFAULT_IMAGE_MODELS = ["gemini/imagen-4.0-generate-001"]

_NUMBERED_KEY = re.compile(r"^TUTOR_API_KEY_(\d+)$")


def _split_csv_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    values = [value.strip() for value in raw.split(",")]
    return [value for value in values if value]


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        lib_logger.warning(f"Invalid {name}={raw!r}, using {default}")
        return default
    # 0 or negative disables the setting
    return value if value > 0 else None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        lib_logger.warning(f"Invalid {name}={raw!r}, using {default}")
        value = default
    return max(0, value)


def load_api_keys() -> List[str]:
    """
    Collects provider credentials from the environment.

    TUTOR_API_KEYS holds a comma-separated list; numbered TUTOR_API_KEY_<n>
    variables are appended in numeric order. Duplicates are dropped.
    """
    keys = _split_csv_env("TUTOR_API_KEYS", [])
    numbered = []
    for name, value in os.environ.items():
        match = _NUMBERED_KEY.match(name)
        if match and value.strip():
            numbered.append((int(match.group(1)), value.strip()))
    keys += [value for _, value in sorted(numbered)]

    unique: List[str] = []
    for key in keys:
        if key not in unique:
            unique.append(key)
    return unique


@dataclass
class Settings:
    api_keys: List[str]
    text_models: List[str] = field(default_factory=lambda: list(DEFAULT_TEXT_MODELS))
    active_model: Optional[str] = None
    voice_models: List[str] = field(default_factory=lambda: list(DEFAULT_VOICE_MODELS))
    speech_models: List[str] = field(default_factory=lambda: list(DEFAULT_SPEECH_MODELS))
    image_models: List[str] = field(default_factory=lambda: list(DEFAULT_IMAGE_MODELS))
    database_url: Optional[str] = None
    attempt_timeout: Optional[float] = 60.0
    retry_delay: Optional[float] = 0.5
    free_weekly_requests: int = 0
    log_dir: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        # Load environment variables from .env file
        load_dotenv(dotenv_path)

        api_keys = load_api_keys()
        if not api_keys:
            raise ConfigurationError(
                "No provider API keys found. Set TUTOR_API_KEYS or TUTOR_API_KEY_1.."
            )

        return cls(
            api_keys=api_keys,
            text_models=_split_csv_env("TEXT_MODELS", DEFAULT_TEXT_MODELS),
            active_model=(os.getenv("ACTIVE_MODEL") or "").strip() or None,
            voice_models=_split_csv_env("VOICE_MODELS", DEFAULT_VOICE_MODELS),
            speech_models=_split_csv_env("SPEECH_MODELS", DEFAULT_SPEECH_MODELS),
            image_models=_split_csv_env("IMAGE_MODELS", DEFAULT_IMAGE_MODELS),
            database_url=(os.getenv("DATABASE_URL") or "").strip() or None,
            attempt_timeout=_float_env("ATTEMPT_TIMEOUT_SECONDS", 60.0),
            retry_delay=_float_env("RETRY_DELAY_SECONDS", 0.5),
            free_weekly_requests=_int_env("FREE_WEEKLY_REQUESTS", 0),
            log_dir=(os.getenv("LOG_DIR") or "").strip() or None,
        )
