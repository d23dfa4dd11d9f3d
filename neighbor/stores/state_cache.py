"""
Redis-backed session document store.

Redis provides:
- Sub-millisecond reads/writes for the live game document
- TTL expiration for abandoned games
- Pub/sub so other clients hear about a save immediately

Key patterns:
- syn:game:{game_id}      -> JSON (full session document)
- syn:channel:{game_id}   -> pub/sub channel (see pubsub.py)
"""

import json
import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as redis

from stores.base import DocumentHandler, GameStore, Unsubscribe
from stores.pubsub import GamePubSub, MessageType, PubSubMessage

logger = logging.getLogger(__name__)


class RedisGameStore(GameStore):
    """Redis-backed session document store."""

    GAME_KEY = "syn:game:{game_id}"

    supports_subscribe = True

    def __init__(
        self,
        redis_client: redis.Redis,
        game_ttl: timedelta = timedelta(hours=24),
        pubsub: Optional[GamePubSub] = None,
    ):
        """
        Initialize the store with a Redis client.

        Args:
            redis_client: Async Redis client.
            game_ttl: How long an untouched game survives.
            pubsub: Pub/sub used for change notifications.
        """
        self.redis = redis_client
        self.game_ttl = game_ttl
        self.pubsub = pubsub or GamePubSub(redis_client)

    @classmethod
    async def create(
        cls,
        redis_url: str,
        game_ttl: timedelta = timedelta(hours=24),
        sender_id: str = "default",
    ) -> "RedisGameStore":
        """
        Create a RedisGameStore with a new Redis connection.

        Args:
            redis_url: Redis connection URL.
            game_ttl: How long an untouched game survives.
            sender_id: Tag stamped on published notifications.

        Returns:
            Configured store.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        # Test connection
        await client.ping()
        logger.info("RedisGameStore connected to Redis")
        return cls(client, game_ttl, GamePubSub(client, sender_id=sender_id))

    async def close(self) -> None:
        """Stop the listener and close the Redis connection."""
        await self.pubsub.stop()
        await self.redis.close()

    def _key(self, game_id: str) -> str:
        return self.GAME_KEY.format(game_id=game_id)

    async def save(self, document: dict) -> bool:
        """
        Save the full document and notify subscribers.

        Args:
            document: Session document (will be JSON serialized).
        """
        game_id = document["gameId"]
        await self.redis.set(
            self._key(game_id),
            json.dumps(document),
            ex=int(self.game_ttl.total_seconds()),
        )
        await self.pubsub.publish(PubSubMessage(
            type=MessageType.GAME_STATE_UPDATE,
            game_id=game_id,
            data={"document": document},
        ))
        return True

    async def load(self, game_id: str) -> Optional[dict]:
        """
        Get the full document.

        Returns:
            Session document, or None if not found.
        """
        data = await self.redis.get(self._key(game_id))
        if not data:
            return None
        if isinstance(data, bytes):
            data = data.decode()
        return json.loads(data)

    async def delete(self, game_id: str) -> None:
        await self.redis.delete(self._key(game_id))
        await self.pubsub.publish(PubSubMessage(
            type=MessageType.GAME_DELETED,
            game_id=game_id,
            data={},
        ))

    async def subscribe(self, game_id: str, handler: DocumentHandler) -> Unsubscribe:
        """Push every saved document of a game to handler."""

        async def on_message(msg: PubSubMessage) -> None:
            if msg.type == MessageType.GAME_STATE_UPDATE:
                await handler(msg.data["document"])

        await self.pubsub.start()
        await self.pubsub.subscribe(game_id, on_message)

        async def unsubscribe() -> None:
            await self.pubsub.remove_handler(game_id, on_message)

        return unsubscribe
