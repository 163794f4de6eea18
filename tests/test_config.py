"""
Tests for settings and database URL resolution.
"""

from serptrack.database.session import get_database_url
from serptrack.utils.config import get_settings


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for name in ("SERPER_MONTHLY_LIMIT", "RESULT_DEPTH", "CONTAINS_MATCH_ENABLED", "SERPER_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)
        settings = get_settings()
        assert settings.SERPER_URL == "https://google.serper.dev/search"
        assert settings.SERPER_MONTHLY_LIMIT == 2500
        assert settings.RESULT_DEPTH == 10
        assert settings.CONTAINS_MATCH_ENABLED is True

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SERPER_MONTHLY_LIMIT", "1000")
        monkeypatch.setenv("contains_match_enabled", "false")
        monkeypatch.setenv("SERPER_BASELINE_REMAINING", "321")
        settings = get_settings()
        assert settings.SERPER_MONTHLY_LIMIT == 1000
        assert settings.CONTAINS_MATCH_ENABLED is False
        assert settings.SERPER_BASELINE_REMAINING == 321

    def test_cached(self):
        assert get_settings() is get_settings()


class TestDatabaseUrl:
    """Test get_database_url()."""

    def test_postgres_scheme_rewritten(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://user:pw@db:5432/serp")
        assert get_database_url() == "postgresql://user:pw@db:5432/serp"

    def test_sqlite_fallback(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "")
        monkeypatch.setenv("SQLITE_PATH", "/tmp/serptrack-test.db")
        assert get_database_url() == "sqlite:////tmp/serptrack-test.db"
