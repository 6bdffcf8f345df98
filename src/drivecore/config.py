"""Configuration management for drivecore."""

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".drivecore" / "config.json"


@dataclass
class DriveConfig:
    """Configuration for the lock, cache and remote store layers.

    Attributes:
        api_base_url: Base URL of the remote node/user store
        api_key: Bearer key sent with every remote request
        request_timeout: Per-request timeout in seconds
        retry_attempts: Attempts made for transient (555) failures
        retry_backoff: Base delay in seconds; attempt n waits n * retry_backoff
        lock_timeout: Seconds after which an unreleased edit lock is stale (5 minutes)
        cache_ttl: Default time-to-live for cached reads in seconds (5 minutes)
        listing_ttl: Time-to-live for cached explorer listings (3 minutes)
        sweep_interval: Seconds between background cache sweeps (None = no sweeper)
        max_text_bytes: Maximum UTF-8 size of a file's text (10 KiB)
        max_tags: Maximum number of tags per node
    """

    api_base_url: str = "http://localhost:3000/v1"
    api_key: Optional[str] = None
    request_timeout: float = 10.0
    retry_attempts: int = 3
    retry_backoff: float = 0.5
    lock_timeout: int = 300
    cache_ttl: int = 300
    listing_ttl: int = 180
    sweep_interval: Optional[int] = 60
    max_text_bytes: int = 10 * 1024
    max_tags: int = 5

    def __post_init__(self):
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        if self.lock_timeout <= 0:
            raise ValueError("lock_timeout must be positive")
        self.api_base_url = self.api_base_url.rstrip("/")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "DriveConfig":
        """Load configuration from a JSON file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            DriveConfig instance (defaults if the file does not exist)
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        return cls(**data)

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to a JSON file.

        The API key is not written to disk.
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        data.pop("api_key")

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "DriveConfig":
        """Create configuration from environment variables.

        Environment variables:
            DRIVECORE_API_BASE_URL: Remote store base URL
            DRIVECORE_API_KEY: Remote store bearer key
            DRIVECORE_LOCK_TIMEOUT: Lock timeout in seconds
            DRIVECORE_CACHE_TTL: Default cache TTL in seconds
            DRIVECORE_RETRY_ATTEMPTS: Attempts for transient failures

        Returns:
            DriveConfig instance
        """
        config = cls()

        if os.getenv("DRIVECORE_API_BASE_URL"):
            config.api_base_url = os.getenv("DRIVECORE_API_BASE_URL").rstrip("/")

        if os.getenv("DRIVECORE_API_KEY"):
            config.api_key = os.getenv("DRIVECORE_API_KEY")

        if os.getenv("DRIVECORE_LOCK_TIMEOUT"):
            config.lock_timeout = int(os.getenv("DRIVECORE_LOCK_TIMEOUT"))

        if os.getenv("DRIVECORE_CACHE_TTL"):
            config.cache_ttl = int(os.getenv("DRIVECORE_CACHE_TTL"))

        if os.getenv("DRIVECORE_RETRY_ATTEMPTS"):
            config.retry_attempts = int(os.getenv("DRIVECORE_RETRY_ATTEMPTS"))

        return config


# Global configuration instance
_global_config: Optional[DriveConfig] = None


def get_global_config() -> DriveConfig:
    """Get global configuration.

    Returns:
        Global DriveConfig instance
    """
    global _global_config
    if _global_config is None:
        # Config file first, then env, then defaults
        if DEFAULT_CONFIG_PATH.exists():
            try:
                _global_config = DriveConfig.load()
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Ignoring unreadable config file: {e}")
        if _global_config is None:
            _global_config = DriveConfig.from_env()
    return _global_config


def set_global_config(config: Optional[DriveConfig]) -> None:
    """Set global configuration (None resets to lazy loading).

    Args:
        config: DriveConfig instance to use globally
    """
    global _global_config
    _global_config = config
