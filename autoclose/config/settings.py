# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Configuration management for the auto-close engine.

Values come from (highest priority first):
1. A YAML config file passed to ``load_settings(config_file=...)``
2. Environment variables prefixed with ``AUTOCLOSE_`` (``OPENAI_API_KEY`` is
   also honoured for the API key)
3. A ``.env`` file in the working directory
4. The defaults below
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from autoclose.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Default models used by the original demo deployment
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_COMPLETION_MODEL = "gpt-4o-mini"
DEFAULT_SIMULATOR_MODEL = "gpt-3.5-turbo"

# Threshold 0.55 scored best on the bundled closure dataset (recall 100%).
# 0.65 is the conservative alternative; both are a configuration choice.
DEFAULT_SIMILARITY_THRESHOLD = 0.55


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOCLOSE_",
        env_file=".env" if not os.getenv("AUTOCLOSE_SKIP_ENV_FILE") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Remote capabilities
    openai_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("openai_api_key", "AUTOCLOSE_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: str = "https://api.openai.com/v1"
    # When set, embeddings and completions go through the serverless proxy
    # instead of calling the provider directly with the API key.
    proxy_base_url: Optional[str] = None
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    completion_model: str = DEFAULT_COMPLETION_MODEL
    http_timeout: float = Field(30.0, gt=0)

    # Closure detection
    similarity_threshold: float = Field(DEFAULT_SIMILARITY_THRESHOLD, ge=0.0, le=1.0)
    min_message_length: int = Field(5, ge=0)
    embedding_cache_size: Optional[int] = Field(None, gt=0)

    # Response classification
    classifier_temperature: float = Field(0.3, ge=0.0, le=2.0)
    classifier_max_tokens: int = Field(10, gt=0)

    # Timer engine (seconds)
    standard_close_seconds: float = Field(60.0, gt=0)
    fast_close_seconds: float = Field(15.0, gt=0)
    idle_nudge_seconds: float = Field(45.0, gt=0)
    typing_debounce_seconds: float = Field(1.0, ge=0)

    # Customer simulator
    simulator_model: str = DEFAULT_SIMULATOR_MODEL
    simulator_temperature: float = Field(0.8, ge=0.0, le=2.0)
    simulator_max_tokens: int = Field(150, gt=0)
    simulator_min_delay: float = Field(1.0, ge=0)
    simulator_max_delay: float = Field(10.0, ge=0)

    # Logging
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("proxy_base_url", "openai_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        """Store base URLs without a trailing slash."""
        if v is None:
            return None
        v = v.strip()
        return v.rstrip("/") or None

    @property
    def uses_proxy(self) -> bool:
        """True when remote calls are routed through the serverless proxy."""
        return bool(self.proxy_base_url)

    @property
    def standard_close_ms(self) -> float:
        return self.standard_close_seconds * 1000

    @property
    def fast_close_ms(self) -> float:
        return self.fast_close_seconds * 1000


def _read_config_file(config_file: Union[str, Path]) -> Dict[str, Any]:
    path = Path(config_file).expanduser()
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}", config_key=str(path))
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}", config_key=str(path), cause=e)
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}",
            config_key=str(path),
        )
    return data


def load_settings(config_file: Optional[Union[str, Path]] = None) -> Settings:
    """Load application settings.

    Args:
        config_file: Optional YAML file whose keys override environment values

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If the config file is missing or malformed
    """
    overrides: Dict[str, Any] = {}
    if config_file is not None:
        overrides = _read_config_file(config_file)
        logger.debug(f"Loaded {len(overrides)} setting overrides from {config_file}")
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}", cause=e) from e


_settings: Optional[Settings] = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings (mainly for testing)."""
    global _settings
    with _settings_lock:
        _settings = None


def set_settings(settings: Settings) -> None:
    """Install ``settings`` as the process-wide settings (CLI --config)."""
    global _settings
    with _settings_lock:
        _settings = settings
