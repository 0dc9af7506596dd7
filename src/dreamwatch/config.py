"""Configuration management for dreamwatch."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .budget import InvalidAmountError, InvalidFormatError, parse_budget, parse_duration

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


class DreamwatchSettings(BaseSettings):
    """Runtime configuration sourced from environment variables, .env and config.json.

    Config-file keys use the camelCase names (``defaultBudget``, ``prDraft``...);
    each can also be set through a ``DREAMWATCH_*`` environment variable.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True
    )

    default_budget: float = Field(
        default=5.0,
        validation_alias=AliasChoices("defaultBudget", "DREAMWATCH_DEFAULT_BUDGET"),
    )
    default_timeout: str = Field(
        default="4h",
        validation_alias=AliasChoices("defaultTimeout", "DREAMWATCH_DEFAULT_TIMEOUT"),
    )
    branch_prefix: str = Field(
        default="dreamwatch",
        validation_alias=AliasChoices("branchPrefix", "DREAMWATCH_BRANCH_PREFIX"),
    )
    autopr: bool = Field(default=True, validation_alias=AliasChoices("autopr", "DREAMWATCH_AUTOPR"))
    pr_draft: bool = Field(
        default=True, validation_alias=AliasChoices("prDraft", "DREAMWATCH_PR_DRAFT")
    )
    data_dir: Path = Field(default=Path("~/.dreamwatch"), validation_alias="DREAMWATCH_HOME")
    agent_path: str | None = Field(default=None, validation_alias="DREAMWATCH_AGENT_PATH")
    log_level: str = Field(default="INFO", validation_alias="DREAMWATCH_LOG_LEVEL")

    @field_validator("default_budget", mode="before")
    @classmethod
    def _validate_budget(cls, value):
        try:
            return parse_budget(value)
        except InvalidAmountError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("default_timeout")
    @classmethod
    def _validate_timeout(cls, value: str) -> str:
        try:
            parse_duration(value)
        except InvalidFormatError as exc:
            raise ValueError(str(exc)) from exc
        return value.strip()

    @field_validator("branch_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        normalized = value.strip().strip("/")
        if not normalized:
            raise ValueError("branchPrefix must not be empty")
        return normalized

    @field_validator("data_dir")
    @classmethod
    def _expand_data_dir(cls, value: Path) -> Path:
        return value.expanduser().resolve()

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "DREAMWATCH_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @property
    def default_timeout_ms(self) -> int:
        return parse_duration(self.default_timeout)

    @property
    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


def load_config(path: Path | None = None) -> DreamwatchSettings:
    """Overlay the optional JSON config file on top of env/default settings.

    A missing file yields the defaults; an unreadable, malformed or invalid file
    is reported as a warning and also yields the defaults.
    """

    base = DreamwatchSettings()
    config_path = Path(path) if path is not None else base.config_path
    if not config_path.exists():
        return base

    try:
        overlay = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(overlay, dict):
            raise ValueError("config root must be a JSON object")
        return DreamwatchSettings(**overlay)
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning(
            "Failed to load config from %s, using defaults: %s",
            config_path,
            exc,
            extra={"path": str(config_path)},
        )
        return base


@lru_cache(maxsize=1)
def get_settings() -> DreamwatchSettings:
    """Return the cached settings for this invocation."""

    return load_config()


def get_data_dir(settings: DreamwatchSettings | None = None) -> Path:
    """Return the per-user data directory, creating it when missing."""

    settings = settings or get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings.data_dir


__all__ = ["DreamwatchSettings", "get_data_dir", "get_settings", "load_config"]
