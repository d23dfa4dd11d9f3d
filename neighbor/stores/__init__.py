"""Stores package: session documents, pub/sub, and the activity log."""

import logging
from datetime import timedelta

from config import ClientConfig

from .base import GameStore, DocumentHandler, Unsubscribe
from .memory import MemoryGameStore
from .state_cache import RedisGameStore
from .fallback import FallbackGameStore, STORE_ERRORS
from .pubsub import GamePubSub, PubSubMessage, MessageType
from .activity_log import (
    ActivityEntry,
    ActivityLog,
    ActivityType,
    MemoryActivityLog,
    RedisActivityLog,
)

logger = logging.getLogger(__name__)


async def create_game_store(cfg: ClientConfig, sender_id: str = "default") -> GameStore:
    """
    Build the game store selected by configuration.

    The backend is chosen once here. A Redis store that can't be reached
    at startup is replaced by a local store; one that fails later is
    handled by FallbackGameStore.

    Args:
        cfg: Client configuration.
        sender_id: Tag stamped on published notifications.
    """
    if not cfg.use_redis:
        logger.info("Using local game store")
        return MemoryGameStore()

    try:
        primary = await RedisGameStore.create(
            cfg.REDIS_URL,
            game_ttl=timedelta(hours=cfg.GAME_TTL_HOURS),
            sender_id=sender_id,
        )
    except STORE_ERRORS as e:
        logger.warning(f"Redis connection failed: {e!r} - using local game store")
        return MemoryGameStore()

    return FallbackGameStore(primary)


def create_activity_log(store: GameStore, cfg: ClientConfig) -> ActivityLog:
    """Build an activity log on the same backend as the game store."""
    primary = store.primary if isinstance(store, FallbackGameStore) else store
    if isinstance(primary, RedisGameStore):
        return RedisActivityLog(
            primary.redis,
            primary.pubsub,
            ttl=timedelta(hours=cfg.GAME_TTL_HOURS),
        )
    return MemoryActivityLog()


__all__ = [
    # Game store
    "GameStore",
    "DocumentHandler",
    "Unsubscribe",
    "MemoryGameStore",
    "RedisGameStore",
    "FallbackGameStore",
    "STORE_ERRORS",
    "create_game_store",
    # Pub/sub
    "GamePubSub",
    "PubSubMessage",
    "MessageType",
    # Activity log
    "ActivityEntry",
    "ActivityLog",
    "ActivityType",
    "MemoryActivityLog",
    "RedisActivityLog",
    "create_activity_log",
]
