"""Homebase configuration.

Settings are layered: built-in defaults, then ``config.toml`` in the data
directory, then rows of the ``settings`` table (edited through the settings
API). Later layers win.
"""

import logging
import os
import tomllib
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from homebase.models import Setting

logger = logging.getLogger(__name__)

SECRET_KEYS = {"llm_anthropic_api_key", "llm_openai_api_key"}
# Only config.toml may set these; the settings table cannot.
FILE_ONLY_KEYS = {"admin_user_ids"}


class AppSettings(BaseModel):
    """Effective application settings."""

    # LLM: "anthropic" or "openai" (any OpenAI-compatible endpoint)
    llm_provider: str = "anthropic"
    llm_anthropic_model: str = "claude-3-5-haiku-latest"
    llm_anthropic_api_key: str = ""
    llm_openai_model: str = "gpt-4o-mini"
    llm_openai_base_url: str | None = None
    llm_openai_api_key: str = "no-key-needed"
    llm_max_tokens: int = 1024

    local_timezone: str = "UTC"

    # Chat
    chat_history_limit: int = 50  # turns loaded for display
    chat_context_messages: int = 10  # prior messages sent to the model
    upcoming_event_days: int = 7  # calendar window given to the model

    # Operators allowed to read and change settings (identity provider subjects)
    admin_user_ids: list[str] = []

    @field_validator("local_timezone")
    @classmethod
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to UTC", v)
            return "UTC"
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.local_timezone)


def data_dir() -> Path:
    """Production reads /data, development reads the working directory."""
    if os.getenv("HOMEBASE_ENV", "development") == "production":
        return Path("/data")
    return Path.cwd()


def load_file_config(path: Path | None = None) -> dict:
    """Load config.toml, flattening the ``[llm]`` table into ``llm_*`` keys."""
    path = path or data_dir() / "config.toml"
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except FileNotFoundError:
        return {}

    flat = {k: v for k, v in raw.items() if not isinstance(v, dict)}
    llm = raw.get("llm", {})
    if "provider" in llm:
        flat["llm_provider"] = llm["provider"]
    for provider in ("anthropic", "openai"):
        for key, value in llm.get(provider, {}).items():
            flat[f"llm_{provider}_{key}"] = value
    for key, value in raw.get("chat", {}).items():
        flat[f"chat_{key}"] = value
    return flat


def load_db_settings(db: Session) -> dict[str, str]:
    return {s.key: s.value for s in db.query(Setting).all() if s.key not in FILE_ONLY_KEYS}


def load_settings(db: Session | None = None, config_path: Path | None = None) -> AppSettings:
    """Merge defaults, config.toml and DB settings into an AppSettings."""
    values = load_file_config(config_path)
    if db is not None:
        values.update(load_db_settings(db))
    known = {k: v for k, v in values.items() if k in AppSettings.model_fields}
    return AppSettings(**known)
