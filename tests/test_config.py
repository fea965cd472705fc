import os

import pytest

from tutor_engine.config import DEFAULT_TEXT_MODELS, Settings, load_api_keys
from tutor_engine.errors import ConfigurationError

ENV_VARS = [
    "TUTOR_API_KEYS",
    "TUTOR_API_KEY_1",
    "TUTOR_API_KEY_2",
    "TUTOR_API_KEY_10",
    "TEXT_MODELS",
    "ACTIVE_MODEL",
    "ATTEMPT_TIMEOUT_SECONDS",
    "RETRY_DELAY_SECONDS",
    "FREE_WEEKLY_REQUESTS",
    "DATABASE_URL",
    "LOG_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_keys_from_csv_and_numbered_variables(monkeypatch) -> None:
    monkeypatch.setenv("TUTOR_API_KEYS", "sk-aaaaaa, sk-bbbbbb,,")
    monkeypatch.setenv("TUTOR_API_KEY_10", "sk-dddddd")
    monkeypatch.setenv("TUTOR_API_KEY_2", "sk-cccccc")
    monkeypatch.setenv("TUTOR_API_KEY_1", "sk-aaaaaa")

    assert load_api_keys() == ["sk-aaaaaa", "sk-bbbbbb", "sk-cccccc", "sk-dddddd"]


def test_settings_from_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TUTOR_API_KEYS", "sk-aaaaaa")
    monkeypatch.setenv("TEXT_MODELS", "gemini/one, gemini/two")
    monkeypatch.setenv("ACTIVE_MODEL", "gemini/two")
    monkeypatch.setenv("ATTEMPT_TIMEOUT_SECONDS", "15")
    monkeypatch.setenv("RETRY_DELAY_SECONDS", "0")
    monkeypatch.setenv("FREE_WEEKLY_REQUESTS", "3")

    settings = Settings.from_env(tmp_path / "missing.env")

    assert settings.api_keys == ["sk-aaaaaa"]
    assert settings.text_models == ["gemini/one", "gemini/two"]
    assert settings.active_model == "gemini/two"
    assert settings.attempt_timeout == 15.0
    assert settings.retry_delay is None
    assert settings.free_weekly_requests == 3


def test_invalid_numbers_fall_back_to_defaults(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TUTOR_API_KEYS", "sk-aaaaaa")
    monkeypatch.setenv("ATTEMPT_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("FREE_WEEKLY_REQUESTS", "lots")

    settings = Settings.from_env(tmp_path / "missing.env")

    assert settings.attempt_timeout == 60.0
    assert settings.free_weekly_requests == 0
    assert settings.text_models == DEFAULT_TEXT_MODELS


def test_dotenv_file_is_loaded(tmp_path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("TUTOR_API_KEYS=sk-from-dotenv\n")

    try:
        assert Settings.from_env(env_file).api_keys == ["sk-from-dotenv"]
    finally:
        os.environ.pop("TUTOR_API_KEYS", None)


def test_missing_keys_is_a_configuration_error(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        Settings.from_env(tmp_path / "missing.env")
