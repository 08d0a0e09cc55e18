"""
Configuration management for graspreach.

Process-level settings come from environment variables, optionally
provided through a .env file. Planning parameters live in
`planner_config.PlannerConfig`.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self, env_file: Optional[Path] = None):
        """
        Load settings.

        Args:
            env_file: .env file to load (default: .env in the working directory)
        """
        env_file = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        # Application
        self.app_name: str = os.getenv("GRASPREACH_APP_NAME", "graspreach")
        self.debug: bool = os.getenv("GRASPREACH_DEBUG", "false").lower() == "true"

        # Logging
        self.log_level: str = os.getenv("GRASPREACH_LOG_LEVEL", "DEBUG" if self.debug else "INFO")
        self.log_file: Optional[str] = os.getenv("GRASPREACH_LOG_FILE")

        # Planning
        self.config_path: Optional[str] = os.getenv("GRASPREACH_CONFIG")
        self.n_workers: int = int(os.getenv("GRASPREACH_N_WORKERS", "1"))

        # External IK service
        self.ik_service_url: Optional[str] = os.getenv("GRASPREACH_IK_SERVICE_URL")
        self.ik_service_timeout: float = float(os.getenv("GRASPREACH_IK_SERVICE_TIMEOUT", "5.0"))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key."""
        return getattr(self, key, default)

    def __getitem__(self, key: str) -> Any:
        return getattr(self, key)

    def __contains__(self, key: str) -> bool:
        return hasattr(self, key)

    def to_dict(self) -> dict:
        return {
            key: value for key, value in vars(self).items()
            if not key.startswith("_")
        }

    def __repr__(self) -> str:
        return f"<Settings: {self.app_name}>"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance (cached).
    """
    return Settings()
