"""
Redis pub/sub for session document changes.

There is no server relaying moves between clients. When one client saves,
the Redis store publishes the full document on the game's channel, and
every client listening on that channel reconciles right away instead of
waiting for its next poll. Activity log entries travel on the same
channel.

Channel naming:
    syn:channel:{game_id}

Usage:
    pubsub = GamePubSub(redis_client, sender_id=client_tag)
    await pubsub.start()
    await pubsub.subscribe("AB12CD", on_message)
    ...
    await pubsub.stop()
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import redis.asyncio as redis

logger = logging.getLogger(__name__)

# Seconds to back off after the listener hits an error
LISTENER_RETRY_DELAY = 1.0


class MessageType(str, Enum):
    GAME_STATE_UPDATE = "game_state_update"  # data: {"document": {...}}
    GAME_DELETED = "game_deleted"            # data: {}
    ACTIVITY = "activity"                    # data: {"entry": {...}}


@dataclass
class PubSubMessage:
    """
    A notification on a game's channel.

    sender_id is filled in by GamePubSub.publish() with the publishing
    client's tag.
    """

    type: MessageType
    game_id: str
    data: dict
    sender_id: Optional[str] = None

    def to_json(self) -> str:
        payload = asdict(self)
        payload["type"] = self.type.value
        return json.dumps(payload)

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "PubSubMessage":
        payload = json.loads(raw)
        return cls(
            type=MessageType(payload["type"]),
            game_id=payload["game_id"],
            data=payload.get("data") or {},
            sender_id=payload.get("sender_id"),
        )


MessageHandler = Callable[[PubSubMessage], Awaitable[None]]


def _text(value: Union[str, bytes]) -> str:
    return value.decode() if isinstance(value, bytes) else value


class GamePubSub:
    """
    Per-game channels over one Redis pub/sub connection.

    Any number of handlers can listen on a game; the Redis subscription
    is opened with the first handler and dropped with the last one.
    """

    CHANNEL_PREFIX = "syn:channel:"

    def __init__(
        self,
        redis_client: redis.Redis,
        sender_id: str = "default",
        skip_own: bool = False,
    ):
        """
        Args:
            redis_client: Async Redis client.
            sender_id: Tag stamped on everything this instance publishes.
            skip_own: Don't deliver messages this instance published.
        """
        self.redis = redis_client
        self.sender_id = sender_id
        self.skip_own = skip_own
        self.pubsub = redis_client.pubsub()
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._task: Optional[asyncio.Task] = None

    def channel_for(self, game_id: str) -> str:
        return f"{self.CHANNEL_PREFIX}{game_id}"

    @property
    def listening(self) -> bool:
        return self._task is not None

    async def subscribe(self, game_id: str, handler: MessageHandler) -> None:
        channel = self.channel_for(game_id)
        handlers = self._handlers.get(channel)
        if handlers is None:
            await self.pubsub.subscribe(channel)
            handlers = self._handlers[channel] = []
            logger.debug(f"Subscribed to {channel}")
        handlers.append(handler)

    async def unsubscribe(self, game_id: str) -> None:
        """Drop every handler for a game and close its Redis subscription."""
        channel = self.channel_for(game_id)
        if self._handlers.pop(channel, None) is not None:
            await self.pubsub.unsubscribe(channel)
            logger.debug(f"Unsubscribed from {channel}")

    async def remove_handler(self, game_id: str, handler: MessageHandler) -> None:
        handlers = self._handlers.get(self.channel_for(game_id))
        if handlers is None:
            return
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            await self.unsubscribe(game_id)

    async def publish(self, message: PubSubMessage) -> int:
        """
        Publish on the message's game channel.

        Returns:
            Number of Redis subscribers that received it.
        """
        stamped = replace(message, sender_id=self.sender_id)
        channel = self.channel_for(stamped.game_id)
        receivers = await self.redis.publish(channel, stamped.to_json())
        logger.debug(f"Published {stamped.type.value} on {channel} to {receivers} receivers")
        return receivers

    async def start(self) -> None:
        """Start the listener task (no-op if already running)."""
        if self._task is None:
            self._task = asyncio.create_task(self._listen())
            logger.info(f"Pub/sub listener started for {self.sender_id}")

    async def stop(self) -> None:
        """Stop the listener, drop all handlers, and close the connection."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._handlers.clear()
        await self.pubsub.close()
        logger.info(f"Pub/sub listener stopped for {self.sender_id}")

    async def _listen(self) -> None:
        while True:
            try:
                raw = await self.pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except redis.ConnectionError as e:
                logger.error(f"Pub/sub connection error: {e}")
                await asyncio.sleep(LISTENER_RETRY_DELAY)
                continue
            except Exception as e:
                logger.error(f"Pub/sub listener error: {e}", exc_info=True)
                await asyncio.sleep(LISTENER_RETRY_DELAY)
                continue

            if raw is None:
                # get_message returns at once while nothing is subscribed
                await asyncio.sleep(0 if self._handlers else LISTENER_RETRY_DELAY)
            elif raw.get("type") == "message":
                await self._handle_message(raw)

    async def _handle_message(self, raw: dict) -> None:
        """Decode a raw Redis message and hand it to the channel's handlers."""
        channel = _text(raw["channel"])
        try:
            message = PubSubMessage.from_json(_text(raw["data"]))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning(f"Dropping malformed message on {channel}: {e!r}")
            return

        if self.skip_own and message.sender_id == self.sender_id:
            return

        for handler in list(self._handlers.get(channel, ())):
            try:
                await handler(message)
            except Exception as e:
                logger.error(f"Pub/sub handler failed on {channel}: {e}", exc_info=True)
