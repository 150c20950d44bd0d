"""
Root conftest — isolate secrets and config-path environment variables so
that Settings tests are not affected by a developer's or CI runner's real
values.
"""
import pytest

_ISOLATED_ENV_VARS = [
    "TELEGRAM_BOT_TOKEN",
    "CRON_SECRET",
    "SPEAKERBOT_CONFIG",
]


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch):
    """Remove secret env vars for every test so Settings() behaves as if none
    are present unless the test explicitly provides them. Also disables .env
    file loading so a local developer .env does not leak into tests."""
    for var in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    import speakerbot.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)
