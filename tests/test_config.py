"""
tests/test_config.py -- Settings loading and the SESSION_SECRET policy.

Settings is instantiated directly (not through the cached get_settings()) so
each test controls its own environment via monkeypatch.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import LOCAL_ORIGINS, Settings, get_settings

LONG_SECRET = "s" * 40


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("SESSION_SECRET", "FRONTEND_URL", "NODE_ENV", "PORT"):
        monkeypatch.delenv(var, raising=False)


class TestEnvironment:
    def test_app_env(self) -> None:
        settings = Settings()
        assert settings.environment == "test"
        assert not settings.is_production

    def test_node_env_accepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("APP_ENV")
        monkeypatch.setenv("NODE_ENV", "production")
        monkeypatch.setenv("SESSION_SECRET", LONG_SECRET)
        settings = Settings()
        assert settings.environment == "production"
        assert settings.is_production

    def test_default_is_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("APP_ENV")
        assert Settings().environment == "development"

    def test_port_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        assert Settings().port == 5000
        monkeypatch.setenv("PORT", "8081")
        assert Settings().port == 8081

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestSessionSecret:
    def test_generated_outside_production(self, caplog: pytest.LogCaptureFixture) -> None:
        first, second = Settings(), Settings()
        assert len(first.session_secret) == 64
        assert first.session_secret != second.session_secret
        assert "auto-generated SESSION_SECRET" in caplog.text

    def test_required_in_production(self) -> None:
        with pytest.raises(ValidationError, match="SESSION_SECRET is required"):
            Settings(environment="production")

    def test_too_short(self) -> None:
        with pytest.raises(ValidationError, match="at least 32 characters"):
            Settings(session_secret="short")

    def test_explicit_secret_kept(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SESSION_SECRET", LONG_SECRET)
        assert Settings().session_secret == LONG_SECRET


class TestDerived:
    def test_local_origins_only_by_default(self) -> None:
        assert Settings().allowed_origins == LOCAL_ORIGINS

    def test_frontend_url_appended_without_slash(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FRONTEND_URL", "https://studyshala.netlify.app/")
        assert Settings().allowed_origins == (*LOCAL_ORIGINS, "https://studyshala.netlify.app")

    def test_frontend_url_not_duplicated(self) -> None:
        assert Settings(frontend_url="http://localhost:5173").allowed_origins == LOCAL_ORIGINS

    @pytest.mark.parametrize("environment,same_site", [("development", "lax"), ("production", "none")])
    def test_cookie_same_site(self, environment: str, same_site: str) -> None:
        settings = Settings(environment=environment, session_secret=LONG_SECRET)
        assert settings.cookie_same_site == same_site
