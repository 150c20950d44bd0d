"""
tests/unit/test_settings.py — Configuration Tests

Covers:
  - defaults (15:00 UTC reminders, Monday 16:00 UTC weekly summary)
  - hour / minute / weekday / interval / port / log level rejected at parse time
  - blank and numeric channel ids are normalized
  - validate_all() raises ConfigError with a numbered list
  - validate_all(require_bot=False) skips the bot token check
  - load_settings(): YAML file, SPEAKERBOT_CONFIG, explicit path priority,
    environment overrides beating the YAML file
  - every load_settings() call returns its own Settings; no global instance
"""

from __future__ import annotations

import textwrap

import pytest
from pydantic import ValidationError

from speakerbot.config.settings import (
    ConfigError,
    HttpConfig,
    LoggingConfig,
    ProactiveConfig,
    Settings,
    load_settings,
)


def _write_yaml(path, body: str):
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestProactiveConfig:
    def test_defaults(self):
        cfg = ProactiveConfig()
        assert (cfg.reminders_hour, cfg.reminders_minute) == (15, 0)
        assert (cfg.weekly_day_of_week, cfg.weekly_hour, cfg.weekly_minute) == (1, 16, 0)
        assert cfg.reminders_enabled and cfg.weekly_enabled
        assert cfg.summary_window_days == 7
        assert cfg.announcements_channel_id is None

    @pytest.mark.parametrize("field,value", [
        ("reminders_hour", 24),
        ("weekly_hour", -1),
        ("reminders_minute", 60),
        ("weekly_day_of_week", 7),
        ("check_interval_seconds", 0),
        ("summary_window_days", 0),
    ])
    def test_out_of_range_rejected(self, field, value):
        with pytest.raises(ValidationError):
            ProactiveConfig(**{field: value})

    def test_blank_channel_is_none(self):
        assert ProactiveConfig(announcements_channel_id="").announcements_channel_id is None

    def test_numeric_ids_become_strings(self):
        cfg = ProactiveConfig(community_id=-1001, announcements_channel_id=-1002)
        assert cfg.community_id == "-1001"
        assert cfg.announcements_channel_id == "-1002"


class TestOtherSections:
    def test_bad_port(self):
        with pytest.raises(ValidationError):
            HttpConfig(port=70000)

    def test_log_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_bad_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")


class TestValidateAll:
    def test_missing_token(self):
        with pytest.raises(ConfigError) as exc_info:
            Settings().validate_all()
        assert "1. TELEGRAM_BOT_TOKEN" in str(exc_info.value)

    def test_token_not_required(self):
        Settings().validate_all(require_bot=False)

    def test_token_from_env(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        s = Settings()
        assert s.telegram_bot_token == "123:abc"
        s.validate_all()

    def test_blank_token_is_missing(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "")
        assert Settings().telegram_bot_token is None

    def test_public_bind_without_secret_listed(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        s = Settings(http={"host": "0.0.0.0"})
        with pytest.raises(ConfigError) as exc_info:
            s.validate_all()
        assert "CRON_SECRET" in str(exc_info.value)

    def test_public_bind_with_secret_ok(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        monkeypatch.setenv("CRON_SECRET", "s3cret")
        Settings(http={"host": "0.0.0.0"}).validate_all()

    def test_all_problems_listed(self):
        s = Settings(http={"host": "0.0.0.0"}, store={"sqlite_path": " "})
        with pytest.raises(ConfigError) as exc_info:
            s.validate_all()
        message = str(exc_info.value)
        assert "3 configuration problem(s)" in message
        assert "  3. store.sqlite_path" in message

    def test_has_summary_destination(self):
        assert not Settings().has_summary_destination
        assert Settings(proactive={"community_id": "-1"}).has_summary_destination


class TestLoadSettings:
    def test_yaml_values(self, tmp_path):
        path = _write_yaml(tmp_path / "c.yaml", """
            proactive:
              reminders_hour: 9
              announcements_channel_id: "-100:4"
            telegram:
              admin_user_ids: [7, 8]
        """)
        s = load_settings(path)
        assert s.proactive.reminders_hour == 9
        assert s.proactive.announcements_channel_id == "-100:4"
        assert s.telegram.admin_user_ids == [7, 8]

    def test_missing_file_gives_defaults(self, tmp_path):
        s = load_settings(tmp_path / "absent.yaml")
        assert s.proactive.reminders_hour == 15

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = _write_yaml(tmp_path / "env.yaml", "proactive:\n  weekly_hour: 8\n")
        monkeypatch.setenv("SPEAKERBOT_CONFIG", str(path))
        assert load_settings().proactive.weekly_hour == 8

    def test_explicit_path_beats_env_var(self, tmp_path, monkeypatch):
        env_path = _write_yaml(tmp_path / "env.yaml", "proactive:\n  weekly_hour: 8\n")
        arg_path = _write_yaml(tmp_path / "arg.yaml", "proactive:\n  weekly_hour: 20\n")
        monkeypatch.setenv("SPEAKERBOT_CONFIG", str(env_path))
        assert load_settings(arg_path).proactive.weekly_hour == 20

    def test_nested_env_override_beats_yaml(self, tmp_path, monkeypatch):
        path = _write_yaml(tmp_path / "c.yaml", """
            proactive:
              weekly_enabled: true
              weekly_hour: 11
        """)
        monkeypatch.setenv("PROACTIVE__WEEKLY_ENABLED", "false")
        s = load_settings(path)
        assert s.proactive.weekly_enabled is False
        assert s.proactive.weekly_hour == 11

    def test_invalid_yaml_value(self, tmp_path):
        path = _write_yaml(tmp_path / "c.yaml", "proactive:\n  weekly_day_of_week: 9\n")
        with pytest.raises(ValidationError):
            load_settings(path)

    def test_unknown_sections_ignored(self, tmp_path):
        path = _write_yaml(tmp_path / "c.yaml", "llm:\n  provider: x\nstore:\n  sqlite_path: a.db\n")
        assert load_settings(path).store.sqlite_path == "a.db"

    def test_each_load_is_independent(self, tmp_path):
        first = load_settings(_write_yaml(tmp_path / "a.yaml", "proactive:\n  weekly_hour: 8\n"))
        second = load_settings(_write_yaml(tmp_path / "b.yaml", "proactive:\n  weekly_hour: 20\n"))
        assert first is not second
        assert first.proactive.weekly_hour == 8
        assert second.proactive.weekly_hour == 20

    def test_no_global_settings_accessor(self):
        import speakerbot.config as config_pkg
        assert not hasattr(config_pkg, "get_settings")
