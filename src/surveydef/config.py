"""
Engine configuration.

Limits and presentation defaults used across the engine. Library functions
take these as keyword arguments defaulting to the module constants below;
front ends (CLI, response sessions) load an EngineConfig and pass its values.

Sources, in order:
    - YAML file (optional)
    - SURVEYDEF_<FIELD> environment variables
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator

from surveydef.errors import ConfigError


logger = logging.getLogger(__name__)

MAX_PARALLEL_ITEMS = 30
DEFAULT_MIN_ITEMS = 1
DEFAULT_MAX_ITEMS = 5
DEFAULT_ITEM_LABEL = "Элемент"
DEFAULT_DISPLAY_MODE = "tabs"
PLACEHOLDER_MAX_LENGTH = 40
MISSING_VALUE_TEXT = "undefined"
MISSING_OPTION_MARKER = "(нет текста)"
COPY_SUFFIX = " (Копия)"
PUBLISH_RETRIES = 3

ENV_PREFIX = "SURVEYDEF_"


def max_items_message(ceiling: int = MAX_PARALLEL_ITEMS) -> str:
    return f"Максимум {ceiling} повторений"


class EngineConfig(BaseModel):
    max_parallel_items: int = Field(default=MAX_PARALLEL_ITEMS, ge=1)
    default_min_items: int = Field(default=DEFAULT_MIN_ITEMS, ge=0)
    default_max_items: int = Field(default=DEFAULT_MAX_ITEMS, ge=0)
    default_item_label: str = DEFAULT_ITEM_LABEL
    default_display_mode: str = DEFAULT_DISPLAY_MODE
    placeholder_max_length: int = PLACEHOLDER_MAX_LENGTH
    missing_value_text: str = MISSING_VALUE_TEXT
    missing_option_marker: str = MISSING_OPTION_MARKER
    copy_suffix: str = COPY_SUFFIX
    publish_retries: int = PUBLISH_RETRIES
    log_level: str = "INFO"

    @field_validator("default_display_mode")
    @classmethod
    def display_mode_must_be_known(cls, v: str) -> str:
        if v not in {"sequential", "tabs"}:
            raise ValueError("default_display_mode must be 'sequential' or 'tabs'")
        return v

    @field_validator("placeholder_max_length", "publish_retries")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("log_level")
    @classmethod
    def level_must_exist(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {v!r}")
        return level

    @model_validator(mode="after")
    def limits_must_be_ordered(self) -> "EngineConfig":
        if not self.default_min_items <= self.default_max_items <= self.max_parallel_items:
            raise ValueError(
                "expected default_min_items <= default_max_items <= max_parallel_items"
            )
        return self

    def group_defaults(self) -> Dict[str, Any]:
        """Keyword arguments for merging stored parallel group settings."""
        return {
            "item_label": self.default_item_label,
            "display_mode": self.default_display_mode,
            "min_items": self.default_min_items,
            "max_items": self.default_max_items,
        }


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read config %s: %s", path, e)
        return {}
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a mapping, got {type(data).__name__}")
    return data


def _env_overrides(environ: Dict[str, str]) -> Dict[str, str]:
    overrides = {}
    for name in EngineConfig.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            overrides[name] = environ[key]
    return overrides


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> EngineConfig:
    """
    Build an EngineConfig from an optional YAML file plus environment overrides.

    A missing file yields defaults. Invalid values raise ConfigError.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            data.update(_read_yaml(p))
        else:
            logger.debug("Config file %s not found, using defaults", p)

    data.update(_env_overrides(dict(os.environ) if environ is None else environ))

    try:
        return EngineConfig(**data)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid engine configuration: {e}") from e
