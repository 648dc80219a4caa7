"""
Config system - Layered configuration with dotted access.

Merge order (later overrides earlier):
1. Built-in defaults
2. .env file (parsed with python-dotenv, never exported to os.environ)
3. Process environment variables
4. Manual overrides
"""

from typing import Any, Dict, Mapping, Optional
from pathlib import Path
import copy
import json
import os

from dotenv import dotenv_values

from .faults import ConfigInvalidFault


ENVIRONMENTS = ("production", "development", "testing")


DEFAULTS: Dict[str, Any] = {
    "app": {
        "name": "Kestrel",
        "env": "production",
        "debug": False,
        "url": "http://localhost:8000",
        "key": None,
        "timezone": "UTC",
    },
    "database": {
        "url": "sqlite:///database/database.sqlite",
    },
    "mail": {
        "mailer": "console",
        "host": "localhost",
        "port": 587,
        "username": None,
        "password": None,
        "encryption": "tls",
        "timeout": 10,
        "from": {"address": "hello@example.com", "name": "Kestrel"},
    },
    "session": {
        "lifetime": 120,
        "cookie": "kestrel_session",
        "secure": False,
        "same_site": "Lax",
    },
    "logging": {
        "level": None,
    },
    "views": {
        "path": "resources/views",
    },
}


# Environment variable -> dotted config path
ENV_MAP: Dict[str, str] = {
    "APP_NAME": "app.name",
    "APP_ENV": "app.env",
    "APP_DEBUG": "app.debug",
    "APP_URL": "app.url",
    "APP_KEY": "app.key",
    "APP_TIMEZONE": "app.timezone",
    "DB_URL": "database.url",
    "DB_CONNECTION": "database.connection",
    "DB_DATABASE": "database.database",
    "MAIL_MAILER": "mail.mailer",
    "MAIL_HOST": "mail.host",
    "MAIL_PORT": "mail.port",
    "MAIL_USERNAME": "mail.username",
    "MAIL_PASSWORD": "mail.password",
    "MAIL_ENCRYPTION": "mail.encryption",
    "MAIL_FROM_ADDRESS": "mail.from.address",
    "MAIL_FROM_NAME": "mail.from.name",
    "SESSION_LIFETIME": "session.lifetime",
    "SESSION_COOKIE": "session.cookie",
    "SESSION_SECURE": "session.secure",
    "LOG_LEVEL": "logging.level",
    "VIEWS_PATH": "views.path",
}


class ConfigLoader:
    """
    Loads and merges configuration from defaults, .env, environment
    variables and overrides.

    Values are addressed by dot-separated paths::

        config = ConfigLoader.load(env_file=".env")
        config.get("database.url")
        config.set("app.debug", True)
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.config_data: Dict[str, Any] = copy.deepcopy(DEFAULTS)
        if data:
            self._merge_dict(self.config_data, data)

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = ".env",
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration with the standard merge strategy.

        Args:
            env_file: Path to a .env file (skipped if missing or None)
            environ: Environment mapping (defaults to os.environ)
            overrides: Nested dict applied last

        Returns:
            Validated ConfigLoader instance
        """
        loader = cls()

        if env_file and Path(env_file).exists():
            loader._load_env_mapping(dotenv_values(env_file))

        loader._load_env_mapping(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        loader._derive_database_url()
        loader.validate()
        return loader

    def _load_env_mapping(self, values: Mapping[str, Optional[str]]):
        for key, path in ENV_MAP.items():
            value = values.get(key)
            if value is None:
                continue
            self.set(path, self._parse_value(value))

    def _derive_database_url(self):
        # DB_CONNECTION=sqlite + DB_DATABASE=path is the legacy spelling of DB_URL
        db = self.config_data["database"]
        connection = db.get("connection")
        database = db.get("database")
        if connection and database and connection == "sqlite":
            db["url"] = f"sqlite:///{database}"

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False
        if value.lower() in ("null", "none", ""):
            return None

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def validate(self):
        """Reject values the framework cannot run with."""
        env = self.get("app.env")
        if env not in ENVIRONMENTS:
            raise ConfigInvalidFault("app.env", f"expected one of {', '.join(ENVIRONMENTS)}, got {env!r}")

        for key in ("mail.port", "session.lifetime"):
            value = self.get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigInvalidFault(key, f"expected a positive integer, got {value!r}")

        if self.get("mail.mailer") not in ("smtp", "console", "memory"):
            raise ConfigInvalidFault("mail.mailer", f"unknown mailer {self.get('mail.mailer')!r}")

    # ------------------------------------------------------------------
    # Dotted access
    # ------------------------------------------------------------------

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def set(self, path: str, value: Any) -> None:
        """Set config value by dot-separated path, creating sections."""
        parts = path.split(".")
        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    def has(self, path: str) -> bool:
        sentinel = object()
        return self.get(path, sentinel) is not sentinel

    def all(self) -> dict:
        return copy.deepcopy(self.config_data)

    # ------------------------------------------------------------------
    # Shortcuts
    # ------------------------------------------------------------------

    @property
    def app_name(self) -> str:
        return self.get("app.name")

    @property
    def app_env(self) -> str:
        return self.get("app.env")

    @property
    def app_url(self) -> str:
        return self.get("app.url")

    @property
    def app_key(self) -> Optional[str]:
        return self.get("app.key")

    def is_debug(self) -> bool:
        return bool(self.get("app.debug"))

    def is_production(self) -> bool:
        return self.app_env == "production"

    def is_development(self) -> bool:
        return self.app_env == "development"

    def is_testing(self) -> bool:
        return self.app_env == "testing"

    def get_database_config(self) -> dict:
        return dict(self.get("database", {}))

    def get_mail_config(self) -> dict:
        return copy.deepcopy(self.get("mail", {}))

    def get_session_config(self) -> dict:
        config = dict(self.get("session", {}))
        if self.is_production():
            config["secure"] = True
        return config

    def get_logging_config(self) -> dict:
        config = dict(self.get("logging", {}))
        if not config.get("level"):
            config["level"] = "DEBUG" if self.is_debug() else "INFO"
        return config
