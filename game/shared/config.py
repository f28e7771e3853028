"""Environment configuration for the StudyQuest engine."""
import os
from dataclasses import dataclass

from .exceptions import ConfigurationError


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    table_name: str
    environment: str
    log_level: str
    user_id: str | None = None
    sync_max_attempts: int = 3
    sync_retry_delay: float = 0.5
    sync_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config instance with values from environment

        Raises:
            ConfigurationError: If required environment variables are missing
                or a numeric setting cannot be parsed
        """
        table_name = os.environ.get("TABLE_NAME")
        if not table_name:
            raise ConfigurationError(
                "TABLE_NAME environment variable is required",
                config_key="TABLE_NAME",
            )

        return cls(
            table_name=table_name,
            environment=os.environ.get("ENVIRONMENT", "dev"),
            log_level=os.environ.get("POWERTOOLS_LOG_LEVEL", "INFO"),
            user_id=os.environ.get("STUDYQUEST_USER_ID") or None,
            sync_max_attempts=_read_number("SYNC_MAX_ATTEMPTS", 3, int),
            sync_retry_delay=_read_number("SYNC_RETRY_DELAY_SECONDS", 0.5, float),
            sync_timeout=_read_number("SYNC_TIMEOUT_SECONDS", 5.0, float),
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "prod"


def _read_number(key: str, default, cast):
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}", config_key=key) from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive", config_key=key)
    return value


def get_config() -> Config:
    """Get cached configuration instance.

    Returns:
        Config instance (cached after first call)
    """
    if not hasattr(get_config, "_config"):
        get_config._config = Config.from_env()
    return get_config._config
