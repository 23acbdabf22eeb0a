"""
Settings management with JSON persistence.

Handles loading, saving, and validating application settings.
Uses platformdirs for cross-platform directory resolution.
"""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from platformdirs import user_config_path, user_data_path
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...utils.logger import get_logger
from .config import (
    DEFAULT_INSIGHT_PROMPT,
    DEFAULT_TRANSCRIPT_PATH,
    DEFAULT_TRANSCRIPT_TEMPLATE,
)

logger = get_logger(__name__)

APP_NAME = "podscribe"
API_KEY_ENV_VAR = "OPENAI_API_KEY"


def get_config_dir() -> Path:
    return user_config_path(APP_NAME, ensure_exists=True)


def get_data_dir() -> Path:
    return user_data_path(APP_NAME, ensure_exists=True)


class BackendMode(str, Enum):
    REMOTE_API = "remote_api"
    SELF_HOSTED = "self_hosted"
    LOCAL_MODEL = "local_model"


class Settings(BaseModel):
    model_config = ConfigDict(validate_assignment=False)

    backend_mode: BackendMode = BackendMode.SELF_HOSTED

    api_key: Optional[str] = None
    api_base: Optional[str] = None
    remote_model: str = "whisper-1"

    server_url: Optional[str] = None
    server_model: str = "tiny"

    local_model_id: str = "sherpa-onnx-streaming-zipformer-en-20M-2023-02-17"
    download_missing_model: bool = True

    max_chunk_size_mb: int = Field(default=20, ge=1)
    max_retries: int = Field(default=3, ge=1)
    retry_backoff_ms: int = Field(default=1000, ge=0)
    max_concurrent_chunks: int = Field(default=4, ge=1)
    request_timeout_s: float = Field(default=600.0, gt=0)
    notice_hide_delay_s: float = Field(default=5.0, ge=0)

    transcript_path: str = DEFAULT_TRANSCRIPT_PATH
    transcript_template: str = DEFAULT_TRANSCRIPT_TEMPLATE
    output_dir: Optional[str] = None

    ollama_enabled: bool = False
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3"
    insight_prompt_template: str = DEFAULT_INSIGHT_PROMPT

    @field_validator("transcript_path", "remote_model", "local_model_id")
    @classmethod
    def not_empty(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        if v is None:
            return v
        v = v.strip().rstrip("/")
        return v or None

    @property
    def effective_api_key(self) -> Optional[str]:
        return self.api_key or os.environ.get(API_KEY_ENV_VAR) or None

    @property
    def output_root(self) -> Path:
        if self.output_dir:
            return Path(self.output_dir).expanduser()
        return get_data_dir() / "vault"

    @classmethod
    def load(cls) -> "Settings":
        config_file = get_config_dir() / "settings.json"

        if not config_file.exists():
            return cls()

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise TypeError(f"expected an object, got {type(data).__name__}")
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Could not load settings: {e}. Using defaults.", exc_info=True)
            return cls()

        valid_keys = cls.model_fields.keys()
        filtered_data = {k: v for k, v in data.items() if k in valid_keys}

        # Migration from the old boolean toggle
        if "backend_mode" not in filtered_data and "use_remote_api" in data:
            filtered_data["backend_mode"] = (
                BackendMode.REMOTE_API if data["use_remote_api"] else BackendMode.SELF_HOSTED
            )
            logger.info("Migrated 'use_remote_api' to 'backend_mode'")

        return cls._load_with_fallbacks(filtered_data)

    @classmethod
    def _load_with_fallbacks(cls, data: dict) -> "Settings":
        """Load settings with field-level fallback to defaults on validation errors."""
        defaults = cls()
        result_data = {}

        for field_name in cls.model_fields:
            if field_name not in data:
                continue
            try:
                validated = cls.model_validate(
                    {**defaults.model_dump(), field_name: data[field_name]}
                )
                result_data[field_name] = getattr(validated, field_name)
            except Exception:
                default_val = getattr(defaults, field_name)
                logger.warning(
                    f"Invalid {field_name} {data[field_name]!r}, resetting to {default_val!r}"
                )

        return cls.model_validate({**defaults.model_dump(), **result_data})

    def save(self) -> None:
        config_file = get_config_dir() / "settings.json"

        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.load()
    return _settings_instance
