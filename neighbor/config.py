"""
Centralized configuration for the Screw Your Neighbor game client.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.STORE_BACKEND)
    print(config.POLL_INTERVAL_SECONDS)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class ClientConfig:
    """Game client configuration."""
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Game state store: "memory" (local-only) or "redis"
    STORE_BACKEND: str = "memory"
    REDIS_URL: str = "redis://localhost:6379"
    GAME_TTL_HOURS: int = 24

    # Session settings
    GAME_CODE_LENGTH: int = 6
    DEFAULT_NUM_PLAYERS: int = 4
    MIN_PLAYERS: int = 2
    MAX_PLAYERS: int = 10
    STARTING_CHIPS: int = 3

    # Reconciliation
    POLL_INTERVAL_SECONDS: float = 2.0
    POLL_START_DELAY_SECONDS: float = 3.0
    REVEAL_GRACE_SECONDS: float = 15.0
    TURN_GRACE_SECONDS: float = 3.0

    # Pacing between persisted cascade steps (0 disables the delay)
    SKIP_DELAY_SECONDS: float = 0.8
    TURN_DELAY_SECONDS: float = 0.3

    # Directory for per-client seat bindings (empty = in-memory only)
    IDENTITY_DIR: str = ""

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables."""
        return cls(
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            STORE_BACKEND=get_env("STORE_BACKEND", "memory").lower(),
            REDIS_URL=get_env("REDIS_URL", "redis://localhost:6379"),
            GAME_TTL_HOURS=get_env_int("GAME_TTL_HOURS", 24),
            GAME_CODE_LENGTH=get_env_int("GAME_CODE_LENGTH", 6),
            DEFAULT_NUM_PLAYERS=get_env_int("DEFAULT_NUM_PLAYERS", 4),
            MIN_PLAYERS=get_env_int("MIN_PLAYERS", 2),
            MAX_PLAYERS=get_env_int("MAX_PLAYERS", 10),
            STARTING_CHIPS=get_env_int("STARTING_CHIPS", 3),
            POLL_INTERVAL_SECONDS=get_env_float("POLL_INTERVAL_SECONDS", 2.0),
            POLL_START_DELAY_SECONDS=get_env_float("POLL_START_DELAY_SECONDS", 3.0),
            REVEAL_GRACE_SECONDS=get_env_float("REVEAL_GRACE_SECONDS", 15.0),
            TURN_GRACE_SECONDS=get_env_float("TURN_GRACE_SECONDS", 3.0),
            SKIP_DELAY_SECONDS=get_env_float("SKIP_DELAY_SECONDS", 0.8),
            TURN_DELAY_SECONDS=get_env_float("TURN_DELAY_SECONDS", 0.3),
            IDENTITY_DIR=get_env("IDENTITY_DIR", ""),
        )

    @property
    def use_redis(self) -> bool:
        """Whether the shared store should be Redis-backed."""
        return self.STORE_BACKEND == "redis"


# Global config instance - loaded once at module import
config = ClientConfig.from_env()


def reload_config() -> ClientConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ClientConfig.from_env()
    return config
