"""Configuration management for twaforge.

Tool locations are persisted in ``~/.twaforge/config.json``. Every field can
also come from a ``TWAFORGE_*`` environment variable, which wins over the
file. Signing passwords are read from the environment only and never
written to disk.
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PREFIX = "TWAFORGE_"

# Never persisted by Settings.save().
SECRET_FIELDS = frozenset({"keystore_password", "key_password"})


def _chmod_safe(path: Path, mode: int) -> None:
    """Set file permissions, ignoring errors on Windows."""
    try:
        path.chmod(mode)
    except OSError:
        pass


def get_config_dir() -> Path:
    """Get the config directory, creating if needed."""
    config_dir = Path.home() / ".twaforge"
    config_dir.mkdir(exist_ok=True)
    _chmod_safe(config_dir, 0o700)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.json"


class Settings(BaseSettings):
    """twaforge settings with env and file support."""

    # Only the process environment and config.json; a .env file is never read.
    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    # Toolchain
    jdk_path: str | None = Field(default=None, description="Path to a JDK 17 installation")
    android_sdk_path: str | None = Field(default=None, description="Path to the Android SDK")

    # Network
    fetch_timeout: float = Field(
        default=60.0,
        ge=0,
        description="Seconds to wait for a web manifest or icon download, 0 waits forever",
    )

    # Signing
    keystore_password: SecretStr | None = Field(
        default=None, description="Password of the signing keystore"
    )
    key_password: SecretStr | None = Field(
        default=None, description="Password of the signing key inside the keystore"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level for the CLI")

    @property
    def http_timeout(self) -> float | None:
        return self.fetch_timeout or None

    def save(self) -> None:
        """Save the non-secret settings to the config file."""
        config_path = get_config_path()

        existing: dict = {}
        if config_path.exists():
            try:
                existing = json.loads(config_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning("Ignoring unreadable config file %s", config_path)

        config_data = dict(existing)
        for key, value in self.model_dump().items():
            if key in SECRET_FIELDS:
                continue
            config_data[key] = value

        config_path.write_text(json.dumps(config_data, indent=2), encoding="utf-8")
        _chmod_safe(config_path, 0o600)

    @classmethod
    def load(cls) -> Settings:
        """Load settings from the config file, letting the environment override it."""
        config_path = get_config_path()
        data: dict = {}
        if config_path.exists():
            try:
                data = json.loads(config_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning("Ignoring unreadable config file %s", config_path)

        # Init kwargs beat env vars in pydantic-settings; drop the ones the env overrides.
        data = {
            key: value
            for key, value in data.items()
            if key in cls.model_fields
            and key not in SECRET_FIELDS
            and f"{ENV_PREFIX}{key.upper()}" not in os.environ
        }
        return cls(**data)

    def missing_toolchain(self) -> list[str]:
        """Names of the toolchain settings that are unset or point nowhere."""
        missing = []
        if not self.jdk_path or not Path(self.jdk_path).expanduser().is_dir():
            missing.append("jdk_path")
        if not self.android_sdk_path or not Path(self.android_sdk_path).expanduser().is_dir():
            missing.append("android_sdk_path")
        return missing


@lru_cache
def get_settings(force_reload: bool = False) -> Settings:
    """Get cached settings instance."""
    if force_reload:
        get_settings.cache_clear()
    return Settings.load()


__all__ = ["Settings", "get_config_dir", "get_config_path", "get_settings"]
