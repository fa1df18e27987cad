"""Unit tests for core/config.py -- signing secret policy."""

import pytest

from core.config import Settings

_SECRET_VARS = ("ACCESS_SECRET_KEY", "REFRESH_SECRET_KEY", "RESET_SECRET_KEY")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in _SECRET_VARS:
        monkeypatch.delenv(var, raising=False)


def test_production_requires_secrets() -> None:
    with pytest.raises(ValueError, match="ACCESS_SECRET_KEY is required"):
        Settings(_env_file=None, debug=False)


def test_dev_mode_generates_distinct_secrets() -> None:
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.access_secret_key) >= 32
    assert len(settings.refresh_secret_key) >= 32
    assert settings.access_secret_key != settings.refresh_secret_key


def test_reset_secret_falls_back_to_access() -> None:
    settings = Settings(_env_file=None, access_secret_key="a" * 32, refresh_secret_key="r" * 32)
    assert settings.reset_secret_key == "a" * 32


def test_short_secret_rejected() -> None:
    with pytest.raises(ValueError, match="at least 32"):
        Settings(_env_file=None, access_secret_key="short", refresh_secret_key="r" * 32)


def test_shared_access_and_refresh_secret_rejected() -> None:
    with pytest.raises(ValueError, match="must differ"):
        Settings(_env_file=None, access_secret_key="s" * 32, refresh_secret_key="s" * 32)


def test_env_vars_are_read(monkeypatch) -> None:
    monkeypatch.setenv("ACCESS_SECRET_KEY", "a" * 40)
    monkeypatch.setenv("REFRESH_SECRET_KEY", "r" * 40)
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_SECONDS", "60")
    monkeypatch.setenv("RESET_REVOKES_SESSIONS", "false")
    settings = Settings(_env_file=None, debug=False)
    assert settings.access_token_expire_seconds == 60
    assert settings.refresh_token_expire_seconds == 7 * 24 * 3600
    assert settings.reset_revokes_sessions is False


def test_bcrypt_rounds_bounds() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, debug=True, bcrypt_rounds=3)
