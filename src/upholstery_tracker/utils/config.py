"""
Configuration management for the Upholstery Tracker application.

This module handles:
- Database path configuration
- Tenant selection
- Logging level
- Environment-specific configuration (development vs. production)
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_TENANT_ID,
)

ENV_ENVIRONMENT = "UPHOLSTERY_TRACKER_ENV"
ENV_DATABASE_URL = "UPHOLSTERY_TRACKER_DATABASE_URL"
ENV_TENANT = "UPHOLSTERY_TRACKER_TENANT"
ENV_LOG_LEVEL = "UPHOLSTERY_TRACKER_LOG_LEVEL"


class Config:
    """
    Application configuration manager.

    Handles all configuration settings including database location,
    the active tenant and logging.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get(ENV_DATABASE_URL)
        self._tenant_id = os.environ.get(ENV_TENANT, DEFAULT_TENANT_ID)
        self._log_level = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()

    def _get_project_data_dir(self) -> Path:
        """
        Get the project's data directory for development.

        Returns:
            Path to project data/ directory
        """
        project_root = Path(__file__).parent.parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """
        Get the per-user data directory for production.

        Returns:
            Path to ~/.upholstery_tracker
        """
        return Path.home() / ".upholstery_tracker"

    def ensure_directories(self) -> None:
        """Create the database directory if it doesn't exist."""
        if self._database_url_override is None:
            self._database_dir.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            The override from the environment when set, else a SQLite URL
        """
        if self._database_url_override:
            return self._database_url_override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def tenant_id(self) -> str:
        """Tenant used when a service call does not name one."""
        return self._tenant_id

    @property
    def log_level(self) -> str:
        """Logging level name (e.g. 'INFO')."""
        return self._log_level

    def database_exists(self) -> bool:
        """
        Check if database file exists.

        Returns:
            True if database file exists, False otherwise
        """
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return (
            f"Config(environment='{self.environment}', "
            f"database_url='{self.database_url}', tenant_id='{self._tenant_id}')"
        )


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument - this prevents accidental database
    switching mid-session.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    UPHOLSTERY_TRACKER_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger = logging.getLogger(__name__)
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None


def get_default_tenant_id() -> str:
    """Tenant id from configuration."""
    return get_config().tenant_id
