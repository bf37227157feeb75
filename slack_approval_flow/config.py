"""Pydantic-based configuration helpers for the Slack approval flow."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Iterable, List

from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_COMMAND_NAME = "/approval-test"


class AppSettings(BaseModel):
    """Settings required to talk to Slack and serve its callbacks."""

    bot_token: str = Field("", alias="SLACK_BOT_TOKEN")
    signing_secret: str = Field("", alias="SLACK_SIGNING_SECRET")
    command_name: str = Field(DEFAULT_COMMAND_NAME, alias="SLACK_COMMAND_NAME")
    port: int = Field(3000, alias="PORT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator("bot_token", "signing_secret", mode="before")
    @classmethod
    def _strip_secret(cls, value: str | None) -> str:
        return (value or "").strip()

    @field_validator("command_name")
    @classmethod
    def _ensure_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith("/") or len(value) < 2:
            raise ValueError("Slash command names must start with '/'")
        return value

    @field_validator("port")
    @classmethod
    def _ensure_port_range(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError("PORT must be between 1 and 65535")
        return value

    @field_validator("log_level")
    @classmethod
    def _ensure_known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{value}'")
        return level

    @property
    def verification_enabled(self) -> bool:
        return bool(self.signing_secret)


def _format_invalid(fields: Iterable[str]) -> str:
    """Return a human-friendly comma-separated list of offending env vars."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> AppSettings:
    """Fetch and cache settings from environment variables."""

    try:
        return AppSettings.model_validate(os.environ)
    except ValidationError as exc:
        invalid = [str(error["loc"][0]) for error in exc.errors()]
        message = (
            "Invalid environment variables: "
            f"{_format_invalid(invalid)}"
        )
        raise RuntimeError(message) from exc
