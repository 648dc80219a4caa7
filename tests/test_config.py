"""
Tests for ConfigLoader: defaults, .env files, environment and overrides.
"""

import pytest

from kestrel.config import ConfigLoader
from kestrel.faults import ConfigInvalidFault


class TestDefaults:
    """Built-in defaults."""

    def test_default_values(self):
        config = ConfigLoader()
        assert config.app_name == "Kestrel"
        assert config.app_env == "production"
        assert config.get("database.url") == "sqlite:///database/database.sqlite"
        assert config.get("views.path") == "resources/views"
        assert config.is_production()
        assert not config.is_debug()

    def test_get_missing_returns_default(self):
        config = ConfigLoader()
        assert config.get("nope.nothing", 42) == 42
        assert config.has("app.name")
        assert not config.has("app.nothing")

    def test_set_creates_sections(self):
        config = ConfigLoader()
        config.set("services.cache.ttl", 60)
        assert config.get("services.cache.ttl") == 60

    def test_all_is_a_copy(self):
        config = ConfigLoader()
        data = config.all()
        data["app"]["name"] = "Changed"
        assert config.app_name == "Kestrel"


class TestLoading:
    """Merge order: defaults < .env < environment < overrides."""

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("APP_NAME=Shop\nAPP_DEBUG=true\nMAIL_PORT=2525\n")
        config = ConfigLoader.load(env_file=str(env_file), environ={})
        assert config.app_name == "Shop"
        assert config.is_debug() is True
        assert config.get("mail.port") == 2525

    def test_environment_beats_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("APP_NAME=FromFile\n")
        config = ConfigLoader.load(env_file=str(env_file), environ={"APP_NAME": "FromEnv"})
        assert config.app_name == "FromEnv"

    def test_overrides_win(self):
        config = ConfigLoader.load(
            env_file=None,
            environ={"APP_ENV": "development"},
            overrides={"app": {"env": "testing"}},
        )
        assert config.is_testing()

    def test_missing_env_file_is_skipped(self, tmp_path):
        config = ConfigLoader.load(env_file=str(tmp_path / "missing.env"), environ={})
        assert config.app_name == "Kestrel"

    def test_legacy_sqlite_settings(self):
        config = ConfigLoader.load(
            env_file=None,
            environ={"DB_CONNECTION": "sqlite", "DB_DATABASE": "data/app.sqlite"},
        )
        assert config.get("database.url") == "sqlite:///data/app.sqlite"

    def test_parses_null_and_json(self):
        config = ConfigLoader.load(
            env_file=None,
            environ={"MAIL_USERNAME": "null", "APP_KEY": "secret"},
        )
        assert config.get("mail.username") is None
        assert config.app_key == "secret"


class TestValidation:
    """Invalid values are rejected at load time."""

    def test_unknown_environment(self):
        with pytest.raises(ConfigInvalidFault) as exc_info:
            ConfigLoader.load(env_file=None, environ={"APP_ENV": "staging"})
        assert exc_info.value.metadata["key"] == "app.env"

    def test_non_positive_port(self):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(env_file=None, environ={"MAIL_PORT": "0"})

    def test_unknown_mailer(self):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(env_file=None, environ={"MAIL_MAILER": "carrier-pigeon"})


class TestSections:
    """Section helpers."""

    def test_session_cookie_secure_in_production(self):
        assert ConfigLoader().get_session_config()["secure"] is True
        testing = ConfigLoader({"app": {"env": "testing"}})
        assert testing.get_session_config()["secure"] is False

    def test_logging_level_follows_debug(self):
        assert ConfigLoader().get_logging_config()["level"] == "INFO"
        debug = ConfigLoader({"app": {"debug": True}})
        assert debug.get_logging_config()["level"] == "DEBUG"
        explicit = ConfigLoader({"logging": {"level": "WARNING"}})
        assert explicit.get_logging_config()["level"] == "WARNING"

    def test_mail_config_is_a_copy(self):
        config = ConfigLoader()
        mail = config.get_mail_config()
        mail["from"]["address"] = "changed@example.com"
        assert config.get("mail.from.address") == "hello@example.com"
