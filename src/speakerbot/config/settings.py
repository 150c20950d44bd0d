"""
config/settings.py — speakerbot Runtime Settings

Merges config.yaml (defaults/structure) with .env (secrets).
Pydantic-powered — all fields are validated and typed.

  - ProactiveConfig bounds schedule hours/minutes/weekday at parse time
  - validate_all() performs cross-field startup validation and raises
    ConfigError with a numbered, human-readable list of every problem
  - load_settings() respects SPEAKERBOT_CONFIG as a fallback when no
    explicit config_path argument is given
  - Nested env overrides use "__": PROACTIVE__WEEKLY_ENABLED=false
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(Exception):
    """Raised by validate_all() when one or more config problems are found."""


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class ProactiveConfig(BaseModel):
    """
    Proactive messaging: speaker reminders and the weekly summary.

    All schedule fields are UTC. weekly_day_of_week uses 0=Sunday … 6=Saturday.
    """
    reminders_enabled: bool = True
    weekly_enabled: bool = True
    check_interval_seconds: float = 60.0

    reminders_hour: int = 15
    reminders_minute: int = 0

    weekly_hour: int = 16
    weekly_minute: int = 0
    weekly_day_of_week: int = 1

    announcements_channel_id: Optional[str] = None
    community_id: Optional[str] = None
    summary_window_days: int = 7

    @field_validator("reminders_hour", "weekly_hour")
    @classmethod
    def _valid_hour(cls, v: int) -> int:
        if not (0 <= v <= 23):
            raise ValueError(f"proactive hour must be between 0 and 23, got {v}")
        return v

    @field_validator("reminders_minute", "weekly_minute")
    @classmethod
    def _valid_minute(cls, v: int) -> int:
        if not (0 <= v <= 59):
            raise ValueError(f"proactive minute must be between 0 and 59, got {v}")
        return v

    @field_validator("weekly_day_of_week")
    @classmethod
    def _valid_weekday(cls, v: int) -> int:
        if not (0 <= v <= 6):
            raise ValueError(
                f"proactive.weekly_day_of_week must be 0 (Sunday) to 6 (Saturday), got {v}"
            )
        return v

    @field_validator("check_interval_seconds")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("proactive.check_interval_seconds must be > 0")
        return v

    @field_validator("summary_window_days")
    @classmethod
    def _positive_window(cls, v: int) -> int:
        if v < 1:
            raise ValueError("proactive.summary_window_days must be >= 1")
        return v

    @field_validator("announcements_channel_id", "community_id", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        if v in ("", "null"):
            return None
        return str(v) if isinstance(v, int) else v


class StoreConfig(BaseModel):
    sqlite_path: str = "./data/sqlite/speakerbot.db"


class HttpConfig(BaseModel):
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 3000

    @field_validator("port")
    @classmethod
    def _valid_port(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError("http.port must be between 1 and 65535")
        return v


class TelegramConfig(BaseModel):
    # Users allowed to run /set_proactive_channel in addition to chat admins
    admin_user_ids: list[int] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 20
    backup_count: int = 5
    console_output: bool = True
    json_format: Optional[bool] = None

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    """
    speakerbot runtime settings.

    Priority (highest to lowest):
      1. Environment variables
      2. .env file
      3. config.yaml
      4. Field defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # -- Secrets from .env ---------------------------------------------------
    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    cron_secret: Optional[str] = Field(default=None, alias="CRON_SECRET")

    # -- Structured config (from config.yaml) --------------------------------
    proactive: ProactiveConfig = Field(default_factory=ProactiveConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # config.yaml arrives as init kwargs; environment must still win over it.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("telegram_bot_token", "cron_secret", mode="before")
    @classmethod
    def _blank_secret_is_none(cls, v: Any) -> Optional[str]:
        if v in (None, "", "null"):
            return None
        return v

    # -- Convenience properties ----------------------------------------------

    @property
    def log_level(self) -> str:
        return self.logging.level.upper()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    @property
    def has_summary_destination(self) -> bool:
        """True if a community override lookup or a static channel is configured."""
        p = self.proactive
        return bool(p.community_id or p.announcements_channel_id)

    def validate_all(self, *, require_bot: bool = True) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Pydantic field validators catch type/value errors at parse time; this
        method catches cross-field problems that only matter for a running
        service.
        """
        errors: list[str] = []

        if require_bot and not self.telegram_bot_token:
            errors.append(
                "TELEGRAM_BOT_TOKEN is not set. The notification client cannot "
                "deliver reminders without it."
            )

        if self.http.enabled and self.http.host not in ("127.0.0.1", "localhost", "::1"):
            if not self.cron_secret:
                errors.append(
                    f"http.host is '{self.http.host}' (not loopback) but CRON_SECRET "
                    f"is not set. Remote callers would always be rejected; set "
                    f"CRON_SECRET or bind http.host to 127.0.0.1."
                )

        if not self.store.sqlite_path.strip():
            errors.append("store.sqlite_path must not be empty.")

        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\nspeakerbot startup failed — {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your .env file "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader
# ─────────────────────────────────────────────────────────────────────────────

_KNOWN_SECTIONS = {"proactive", "store", "http", "telegram", "logging"}


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. SPEAKERBOT_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("SPEAKERBOT_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging config.yaml with environment variables."""
    yaml_data = _load_yaml(_resolve_config_path(config_path))
    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}

    return Settings(**init_kwargs)

