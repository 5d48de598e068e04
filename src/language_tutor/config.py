"""
Runtime configuration.

'Settings' gathers everything the composition root needs: storage location,
target language, model selection per chat role, speech settings, logging and
the API credentials. 'Settings.from_env' reads environment variables once;
nothing else in the package reads the environment.

Environment variables:
    LANGUAGE_TUTOR_DATA_DIR   storage root (default ~/.language_tutor)
    LANGUAGE_TUTOR_LANGUAGE   target language (default Korean)
    ADVISOR_MODEL             model for the tutor replies
    UTILITY_MODEL             model for extraction and titles
    SPEECH_MODEL, SPEECH_VOICE, TRANSCRIPTION_MODEL
    SLOW_PLAYBACK_RATE        rate used in slow mode (default 0.75)
    LOG_LEVEL                 stderr log level (default INFO)
    OPENAI_API_KEY            or the secret file /secrets/OPENAI_API_KEY
    OPENAI_BASE_URL           optional OpenAI-compatible endpoint
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from language_tutor.prompts import validate_language


def _get_secret(name: str) -> str:
    """Load a secret from a secret file or an environment variable.

    Checks in order:
    1. /secrets/<name>
    2. <name> environment variable

    Raises ValueError if neither is available.
    """
    secret_file = Path(f"/secrets/{name}")
    if secret_file.exists():
        return secret_file.read_text().strip()
    key = os.environ.get(name, "")
    if not key:
        raise ValueError(
            f"{name} not found. Either:\n"
            f"  - Mount it as a secret file at /secrets/{name}, or\n"
            f"  - Set the {name} environment variable."
        )
    return key


class Settings(BaseModel):
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".language_tutor")
    language: str = "Korean"
    advisor_model: str = "gpt-4o"
    utility_model: str = "gpt-4o-mini"
    temperature: float = 0.5
    speech_model: str = "tts-1"
    speech_voice: str = "alloy"
    transcription_model: str = "whisper-1"
    # ffplay atempo accepts 0.5 and above.
    slow_playback_rate: float = Field(default=0.75, ge=0.5, le=1.0)
    log_level: str = "INFO"
    openai_api_key: str | None = None
    base_url: str | None = None

    @field_validator("language")
    @classmethod
    def _supported_language(cls, value: str) -> str:
        return validate_language(value)

    @property
    def conversations_dir(self) -> Path:
        return self.data_dir / "conversations"

    @property
    def titles_path(self) -> Path:
        return self.data_dir / "titles.json"

    @property
    def audio_dir(self) -> Path:
        return self.data_dir / "audio"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"

    @classmethod
    def from_env(cls) -> "Settings":
        values: dict[str, object] = {"openai_api_key": _get_secret("OPENAI_API_KEY")}
        env_fields = {
            "LANGUAGE_TUTOR_DATA_DIR": "data_dir",
            "LANGUAGE_TUTOR_LANGUAGE": "language",
            "ADVISOR_MODEL": "advisor_model",
            "UTILITY_MODEL": "utility_model",
            "SPEECH_MODEL": "speech_model",
            "SPEECH_VOICE": "speech_voice",
            "TRANSCRIPTION_MODEL": "transcription_model",
            "SLOW_PLAYBACK_RATE": "slow_playback_rate",
            "LOG_LEVEL": "log_level",
            "OPENAI_BASE_URL": "base_url",
        }
        for variable, field_name in env_fields.items():
            value = os.environ.get(variable)
            if value:
                values[field_name] = value
        return cls.model_validate(values)
