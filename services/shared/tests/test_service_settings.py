"""Tests for shared service settings."""

import pytest
from pydantic import ValidationError

from services.shared.settings import ServiceSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DATABASE_URL", "LOG_LEVEL", "LOG_FORMAT", "ENVIRONMENT", "SERVICE_NAME"):
        monkeypatch.delenv(name, raising=False)


def make_settings(**kwargs) -> ServiceSettings:
    return ServiceSettings(_env_file=None, **kwargs)


class TestServiceSettings:

    def test_defaults(self):
        config = make_settings()

        assert config.database_url is None
        assert config.log_level == "INFO"
        assert config.log_format == "json"
        assert config.environment == "development"
        assert not config.is_production()

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/donations")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = make_settings()

        assert config.database_url == "postgresql://u:p@db:5432/donations"
        assert config.log_level == "DEBUG"

    def test_blank_database_url_is_none(self):
        assert make_settings(database_url="  ").database_url is None

    def test_sqlite_url_accepted(self):
        assert make_settings(database_url="sqlite:///donations.db").database_url == "sqlite:///donations.db"

    def test_rejects_other_databases(self):
        with pytest.raises(ValidationError, match="PostgreSQL or SQLite"):
            make_settings(database_url="mysql://u@db/x")

    def test_rejects_unknown_log_level(self):
        with pytest.raises(ValidationError):
            make_settings(log_level="verbose")

    def test_rejects_unknown_log_format(self):
        with pytest.raises(ValidationError):
            make_settings(log_format="xml")

    def test_production(self):
        assert make_settings(environment="Production").is_production()
