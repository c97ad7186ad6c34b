"""Configuration utilities for bptflistings.

Settings come from an optional JSON file, overridden by environment variables
(``BPTF_ACCESS_TOKEN``, ``BPTF_STEAMID64``) and finally by explicit keyword
overrides, then validated by :class:`ListingManagerSettings`.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bptflistings.errors import ConfigurationError

TOKEN_ENV = "BPTF_ACCESS_TOKEN"
STEAMID_ENV = "BPTF_STEAMID64"

_STEAMID64 = re.compile(r"^7656\d{13}$")


def load_config(path: str | Path) -> Dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        path: Path to the JSON configuration file.

    Returns:
        A dictionary of configuration values.
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class ListingManagerSettings(BaseModel):
    """Validated settings for :class:`~bptflistings.services.manager.ListingManager`.

    Durations are in seconds.
    """

    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1)
    steamid64: str
    wait_time: float = Field(default=1.0, ge=0)
    batch_size: int = Field(default=25, ge=1)
    heartbeat_interval: float = Field(default=90.0, gt=0)
    inventory_interval: float = Field(default=120.0, gt=0)
    request_timeout: float = Field(default=20.0, gt=0)
    max_flush_attempts: int = Field(default=3, ge=1)
    backoff_base: float = Field(default=2.0, ge=0)
    relist_window: float = Field(default=1800.0, ge=0)
    base_url: str = "https://backpack.tf"
    schema_path: str | None = None

    @field_validator("steamid64", mode="before")
    @classmethod
    def _check_steamid(cls, value: Any) -> str:
        text = str(value).strip()
        if not _STEAMID64.match(text):
            raise ValueError("steamid64 must be a 17 digit SteamID64")
        return text


def load_settings(config_path: str | Path | None = None, **overrides: Any) -> ListingManagerSettings:
    """Build settings from a JSON file, the environment and ``overrides``.

    Raises:
        ConfigurationError: If the file is unreadable or validation fails.
    """
    values: Dict[str, Any] = {}
    if config_path is not None:
        try:
            values.update(load_config(config_path))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Cannot read config file {config_path}: {exc}") from exc
    if os.environ.get(TOKEN_ENV):
        values["token"] = os.environ[TOKEN_ENV]
    if os.environ.get(STEAMID_ENV):
        values["steamid64"] = os.environ[STEAMID_ENV]
    values.update({key: value for key, value in overrides.items() if value is not None})
    return validate_settings(values)


def validate_settings(values: Dict[str, Any]) -> ListingManagerSettings:
    try:
        return ListingManagerSettings.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc


__all__ = [
    "ListingManagerSettings",
    "STEAMID_ENV",
    "TOKEN_ENV",
    "load_config",
    "load_settings",
    "validate_settings",
]
