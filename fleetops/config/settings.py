"""Engine settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Engine settings from environment.

    Handles parsing, validation, and defaults for all env vars.
    """

    # Timeouts (seconds)
    command_timeout: float = field(default=30.0)
    connect_timeout: float = field(default=30.0)

    # Fan-out; 0 means one concurrent connection per host
    max_concurrency: int = field(default=0)

    # Host key verification: path, "none", or None for ~/.ssh/known_hosts
    known_hosts: str | None = field(default=None)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from FLEETOPS_* environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            command_timeout=cls._get_float("FLEETOPS_COMMAND_TIMEOUT", 30.0),
            connect_timeout=cls._get_float("FLEETOPS_CONNECT_TIMEOUT", 30.0),
            max_concurrency=max(cls._get_int("FLEETOPS_MAX_CONCURRENCY", 0), 0),
            known_hosts=os.getenv("FLEETOPS_KNOWN_HOSTS") or None,
            log_level=os.getenv("FLEETOPS_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("FLEETOPS_LOG_COLORS", True),
        )

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = float(value)
        except ValueError:
            logger.warning("Invalid number for %s: %s, using default %s", key, value, default)
            return default
        if parsed <= 0:
            logger.warning("%s must be positive, got %s, using default %s", key, value, default)
            return default
        return parsed

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")
