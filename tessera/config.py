"""
Config system - layered configuration for the ORM.

Loads and merges settings with precedence (later wins):
defaults < YAML file < .env file < environment variables < overrides.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .faults.domains import ConfigInvalidFault


@dataclass
class DatabaseConfig:
    """Connection settings for the default ``TesseraDatabase``."""

    url: str = "sqlite:///:memory:"
    echo: bool = False
    connect_retries: int = 3
    connect_retry_delay: float = 0.5
    timeout: float = 5.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DatabaseConfig:
        known = {f.name: f for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                raise ConfigInvalidFault(f"database.{key}", "unknown setting")
            kwargs[key] = value
        config = cls(**kwargs)
        config.validate()
        return config

    def validate(self) -> None:
        if not isinstance(self.url, str) or "://" not in self.url:
            raise ConfigInvalidFault("database.url", f"expected a database URL, got {self.url!r}")
        if int(self.connect_retries) < 1:
            raise ConfigInvalidFault("database.connect_retries", "must be at least 1")
        if float(self.connect_retry_delay) < 0:
            raise ConfigInvalidFault("database.connect_retry_delay", "must not be negative")

    def engine_options(self) -> Dict[str, Any]:
        """Keyword options understood by ``TesseraDatabase``."""
        return {
            "echo": bool(self.echo),
            "connect_retries": int(self.connect_retries),
            "connect_retry_delay": float(self.connect_retry_delay),
            "timeout": float(self.timeout),
        }


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > YAML file > defaults

    Environment keys use a prefix and ``__`` for nesting, e.g.
    ``TESSERA_DATABASE__URL=sqlite:///app.db``.
    """

    def __init__(self, env_prefix: str = "TESSERA_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {"database": {}}

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        env_prefix: str = "TESSERA_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> ConfigLoader:
        """
        Load configuration from every source.

        Args:
            path: YAML config file path
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)
        """
        loader = cls(env_prefix=env_prefix)

        if path:
            loader._load_yaml_file(Path(path))
        if env_file:
            loader._load_env_file(env_file)
        loader._load_from_env()
        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_yaml_file(self, path: Path) -> None:
        """Load config from YAML file."""
        import yaml

        if not path.exists():
            raise ConfigInvalidFault(str(path), "config file does not exist")
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigInvalidFault(str(path), "top level must be a mapping")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str) -> None:
        """Load prefixed keys from a .env file."""
        from dotenv import dotenv_values

        if not Path(path).exists():
            return
        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self) -> None:
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str) -> None:
        """Convert TESSERA_DATABASE__URL to nested dict."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

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

    def _merge_dict(self, target: dict, source: dict) -> None:
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def database(self) -> DatabaseConfig:
        """Typed view of the ``database`` section."""
        section = self.config_data.get("database") or {}
        if not isinstance(section, dict):
            raise ConfigInvalidFault("database", "expected a mapping")
        return DatabaseConfig.from_dict(section)

    def to_dict(self) -> dict:
        return self.config_data
