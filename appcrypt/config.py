"""
Configuration management for appcrypt.

Handles loading, saving, and accessing configuration values from
environment variables, config files, and default values.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from appcrypt.constants import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    DEFAULT_SCAN_WORKERS,
    DEFAULT_SSH_HOST,
    DEFAULT_SSH_PASSWORD,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_TIMEOUT,
    DEFAULT_SSH_USER,
    DEFAULT_WORK_DIR,
    REMOVE_BUNDLE_DIRS,
    REMOVE_BUNDLE_FILES,
)

logger = logging.getLogger(__name__)


@dataclass
class SSHConfig:
    """Configuration for the SSH/SFTP bundle transfer."""

    host: str = DEFAULT_SSH_HOST
    port: int = DEFAULT_SSH_PORT
    username: str = DEFAULT_SSH_USER
    password: str = DEFAULT_SSH_PASSWORD
    timeout: int = DEFAULT_SSH_TIMEOUT


@dataclass
class CleanupConfig:
    """Names removed from a pulled bundle before scanning."""

    remove_files: list[str] = field(
        default_factory=lambda: sorted(REMOVE_BUNDLE_FILES)
    )
    remove_dirs: list[str] = field(
        default_factory=lambda: sorted(REMOVE_BUNDLE_DIRS)
    )


@dataclass
class ScanConfig:
    """Configuration for bundle scanning."""

    workers: int = DEFAULT_SCAN_WORKERS


@dataclass
class Config:
    """
    Main configuration container for appcrypt.

    Configuration is loaded from (in order of precedence):
    1. Environment variables (APPCRYPT_*)
    2. Config file (~/.appcrypt/config.json)
    3. Default values

    Example:
        config = Config.load()
        print(config.ssh.port)

        # Or with custom config file
        config = Config.load(Path("/custom/config.json"))
    """

    config_dir: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR)
    work_dir: Path = field(default_factory=lambda: DEFAULT_WORK_DIR)

    # Sub-configurations
    ssh: SSHConfig = field(default_factory=SSHConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)

    # Frida remote host (e.g. "localhost:27042"), USB when unset
    frida_host: Optional[str] = None

    # Logging
    log_level: str = "WARNING"
    log_json: bool = False

    def __post_init__(self) -> None:
        """Ensure paths are Path objects."""
        self.config_dir = Path(self.config_dir)
        self.work_dir = Path(self.work_dir)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> Config:
        """
        Load configuration from file and environment.

        Args:
            config_path: Optional path to config file. If not provided,
                        uses default location (~/.appcrypt/config.json).

        Returns:
            Config instance with loaded values.
        """
        # Load environment variables from .env file if present
        load_dotenv()

        config_path = config_path or DEFAULT_CONFIG_FILE
        config_data: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    config_data = json.load(f)
                logger.debug(f"Loaded config from {config_path}")
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}")

        config_data = cls._apply_env_overrides(config_data)

        return cls._from_dict(config_data)

    @classmethod
    def _apply_env_overrides(cls, config_data: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to config data."""
        env_mappings = {
            "APPCRYPT_CONFIG_DIR": "config_dir",
            "APPCRYPT_WORK_DIR": "work_dir",
            "APPCRYPT_FRIDA_HOST": "frida_host",
            "APPCRYPT_LOG_LEVEL": "log_level",
            "APPCRYPT_LOG_JSON": "log_json",
            "APPCRYPT_SSH_HOST": ("ssh", "host"),
            "APPCRYPT_SSH_PORT": ("ssh", "port"),
            "APPCRYPT_SSH_USER": ("ssh", "username"),
            "APPCRYPT_SSH_PASSWORD": ("ssh", "password"),
            "APPCRYPT_SSH_TIMEOUT": ("ssh", "timeout"),
            "APPCRYPT_SCAN_WORKERS": ("scan", "workers"),
        }

        for env_var, config_key in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                if isinstance(config_key, tuple):
                    section, key = config_key
                    if section not in config_data:
                        config_data[section] = {}
                    config_data[section][key] = cls._parse_env_value(value)
                else:
                    config_data[config_key] = cls._parse_env_value(value)

        return config_data

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        return value

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Config:
        """Create Config from dictionary."""
        ssh_data = data.pop("ssh", {})
        cleanup_data = data.pop("cleanup", {})
        scan_data = data.pop("scan", {})

        # Passwords are strings even when they look numeric; so are log levels
        if "password" in ssh_data:
            ssh_data["password"] = str(ssh_data["password"])

        return cls(
            config_dir=Path(data.get("config_dir", DEFAULT_CONFIG_DIR)),
            work_dir=Path(data.get("work_dir", DEFAULT_WORK_DIR)),
            ssh=SSHConfig(**ssh_data),
            cleanup=CleanupConfig(**cleanup_data),
            scan=ScanConfig(**scan_data),
            frida_host=data.get("frida_host"),
            log_level=str(data.get("log_level", "WARNING")),
            log_json=bool(data.get("log_json", False)),
        )

    def save(self, config_path: Optional[Path] = None) -> None:
        """
        Save configuration to file.

        Args:
            config_path: Optional path to save to. If not provided,
                        uses default location.
        """
        config_path = config_path or DEFAULT_CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

        logger.info(f"Saved config to {config_path}")

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "config_dir": str(self.config_dir),
            "work_dir": str(self.work_dir),
            "ssh": asdict(self.ssh),
            "cleanup": asdict(self.cleanup),
            "scan": asdict(self.scan),
            "frida_host": self.frida_host,
            "log_level": self.log_level,
            "log_json": self.log_json,
        }

    def ensure_directories(self) -> None:
        """Create all configured directories if they don't exist."""
        for directory in [self.config_dir, self.work_dir]:
            directory.mkdir(parents=True, exist_ok=True)


# Global config instance (lazy loaded)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def reload_config(config_path: Optional[Path] = None) -> Config:
    """Reload configuration from file."""
    global _config
    _config = Config.load(config_path)
    return _config
