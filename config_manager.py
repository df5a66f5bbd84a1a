"""
Configuration management for the Membership Portal.
Handles loading, validating, and providing access to application settings.
"""

import os
import json
import copy
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TIER_NAMES = ("TIER_1", "TIER_2", "TIER_3")
CONTENT_TYPES = ("article", "video")


@dataclass
class AppConfig:
    """Application configuration settings."""
    host: str
    port: int
    debug: bool
    secret_key: Optional[str]
    admin_emails: list[str]
    bcrypt_rounds: Optional[int]


@dataclass
class PathsConfig:
    """Path configuration settings."""
    user_data_dir: str
    content_dir: str


@dataclass
class MembershipConfig:
    """Daily limits per tier and content type ("unlimited" for no cap)."""
    limits: Dict[str, Dict[str, Any]]


class ConfigManager:
    """Manages application configuration loading and access."""

    def __init__(self, config_file: str = "web_app_config.json"):
        self.config_file = Path(config_file)
        self._config: Optional[Dict[str, Any]] = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        # Start with default config
        self._config = self._get_default_config()

        # Load base config from file
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    file_config = json.load(f)
                    # Merge file config with defaults
                    self._merge_config(file_config)
            except (json.JSONDecodeError, FileNotFoundError) as e:
                # Keep default config if file is invalid or not found
                logger.warning(f"Ignoring config file {self.config_file}: {e}")

        # Override with environment variables
        self._override_with_env()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "app": {
                "host": "0.0.0.0",
                "port": 5000,
                "debug": False,
                "secret_key": None,
                "admin_emails": [],
                "bcrypt_rounds": None
            },
            "paths": {
                "user_data_dir": "user_data",
                "content_dir": "content"
            },
            "membership": {
                "TIER_1": {"article": 3, "video": 3},
                "TIER_2": {"article": 10, "video": 10},
                "TIER_3": {"article": "unlimited", "video": "unlimited"}
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config."""
        for section, values in file_config.items():
            if section in self._config and isinstance(values, dict):
                current = self._config[section]
                for key, value in values.items():
                    # Nested tables (membership tiers) merge per key
                    if isinstance(value, dict) and isinstance(current.get(key), dict):
                        current[key].update(value)
                    else:
                        current[key] = value
            else:
                self._config[section] = values

    def _override_with_env(self) -> None:
        """Override configuration with environment variables."""
        # App settings
        if os.getenv("APP_HOST"):
            self._config["app"]["host"] = os.getenv("APP_HOST")

        if os.getenv("APP_PORT"):
            self._config["app"]["port"] = int(os.getenv("APP_PORT"))

        if os.getenv("APP_DEBUG"):
            self._config["app"]["debug"] = os.getenv("APP_DEBUG").lower() == "true"

        if os.getenv("SECRET_KEY"):
            self._config["app"]["secret_key"] = os.getenv("SECRET_KEY")

        if os.getenv("ADMIN_EMAILS"):
            self._config["app"]["admin_emails"] = [
                email.strip() for email in os.getenv("ADMIN_EMAILS").split(",") if email.strip()
            ]

        if os.getenv("BCRYPT_ROUNDS"):
            self._config["app"]["bcrypt_rounds"] = int(os.getenv("BCRYPT_ROUNDS"))

        # Paths
        if os.getenv("USER_DATA_DIR"):
            self._config["paths"]["user_data_dir"] = os.getenv("USER_DATA_DIR")

        if os.getenv("CONTENT_DIR"):
            self._config["paths"]["content_dir"] = os.getenv("CONTENT_DIR")

        # Membership limits, e.g. TIER_2_VIDEO_LIMIT=20 or TIER_1_ARTICLE_LIMIT=unlimited
        for tier in TIER_NAMES:
            for content_type in CONTENT_TYPES:
                value = os.getenv(f"{tier}_{content_type.upper()}_LIMIT")
                if value:
                    limits = self._config["membership"].setdefault(tier, {})
                    limits[content_type] = value

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app_config = self._config["app"]
        return AppConfig(
            host=app_config["host"],
            port=app_config["port"],
            debug=app_config["debug"],
            secret_key=app_config["secret_key"],
            admin_emails=app_config["admin_emails"],
            bcrypt_rounds=app_config.get("bcrypt_rounds")
        )

    def get_paths_config(self) -> PathsConfig:
        """Get paths configuration."""
        paths_config = self._config["paths"]
        return PathsConfig(
            user_data_dir=paths_config["user_data_dir"],
            content_dir=paths_config["content_dir"]
        )

    def get_membership_config(self) -> MembershipConfig:
        """Get membership limits configuration."""
        return MembershipConfig(limits=copy.deepcopy(self._config["membership"]))

    def get_config(self) -> Dict[str, Any]:
        """Get raw configuration dictionary."""
        return copy.deepcopy(self._config)

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()


# Global configuration instance
config_manager = ConfigManager()


def get_app_config() -> AppConfig:
    """Get application configuration."""
    return config_manager.get_app_config()


def get_paths_config() -> PathsConfig:
    """Get paths configuration."""
    return config_manager.get_paths_config()


def get_membership_config() -> MembershipConfig:
    """Get membership limits configuration."""
    return config_manager.get_membership_config()


def reload_config() -> None:
    """Reload configuration."""
    config_manager.reload()
