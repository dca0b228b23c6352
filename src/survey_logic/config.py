"""Configuration for the survey logic engine.

Settings are loaded with the following rules:
- Base: an optional YAML file (``load_settings(path)``).
- Overrides: environment variables ``SURVEY_LOGIC_POINTS_PER_MINUTE`` and
  ``SURVEY_LOGIC_LOG_LEVEL``.
- Validation: a Pydantic model enforces value constraints.
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

logger = logging.getLogger(__name__)

ENV_POINTS_PER_MINUTE = "SURVEY_LOGIC_POINTS_PER_MINUTE"
ENV_LOG_LEVEL = "SURVEY_LOGIC_LOG_LEVEL"

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class ConfigurationError(Exception):
    """Raised when settings cannot be read or fail validation."""


class EngineSettings(BaseModel):
    points_per_minute: int = Field(default=8, gt=0)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level


def _read_yaml_file(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read settings file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping")
    return data


def load_settings(path: Optional[Union[str, Path]] = None) -> EngineSettings:
    """Load settings with validation.

    Precedence (highest first):
    1) Environment variables
    2) The YAML file at ``path``, when given
    3) Defaults
    """
    values = _read_yaml_file(Path(path)) if path is not None else {}

    points = os.environ.get(ENV_POINTS_PER_MINUTE)
    if points is not None:
        values["points_per_minute"] = points.strip()
    level = os.environ.get(ENV_LOG_LEVEL)
    if level is not None:
        values["log_level"] = level

    try:
        return EngineSettings(**values)
    except PydanticValidationError as e:
        logger.error("Invalid engine settings: %s", e)
        raise ConfigurationError(str(e)) from e


@functools.lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Default settings (environment only), loaded once."""
    return load_settings()


__all__ = [
    "ConfigurationError",
    "EngineSettings",
    "get_settings",
    "load_settings",
]
