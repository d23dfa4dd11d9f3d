"""
Activity log for game narration.

An append-only list of what happened in a game ("Bob kept their card",
"Round ended!"), ordered by creation time. It only feeds the user-facing
log; game state decisions never read it. Writes that fail are logged and
reported as False rather than raised.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from stores.base import Unsubscribe
from stores.pubsub import GamePubSub, MessageType, PubSubMessage

logger = logging.getLogger(__name__)


class ActivityType(str, Enum):
    """Kind of log entry, used for styling."""

    ACTION = "action"  # A player's own move
    ROUND = "round"    # Round results
    SYSTEM = "system"  # Game start, eliminations, winner, new dealer


@dataclass
class ActivityEntry:
    """
    One line of the activity log.

    Attributes:
        seat_id: Seat of the player the entry is about.
        player_name: That player's name.
        action: Human-readable description.
        type: Entry kind.
        created_at: Epoch milliseconds.
    """

    seat_id: Optional[int]
    player_name: str
    action: str
    type: ActivityType = ActivityType.ACTION
    created_at: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> dict:
        return {
            "seatId": self.seat_id,
            "playerName": self.player_name,
            "action": self.action,
            "type": self.type.value,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ActivityEntry":
        return cls(
            seat_id=d.get("seatId"),
            player_name=d.get("playerName", ""),
            action=d["action"],
            type=ActivityType(d.get("type", ActivityType.ACTION.value)),
            created_at=d.get("createdAt", 0),
        )


# Receives the full, ordered entry list after every append
EntriesHandler = Callable[[list[ActivityEntry]], Awaitable[None]]


class ActivityLog(ABC):
    """Append-only narration feed per game."""

    @abstractmethod
    async def add_entry(self, game_id: str, entry: ActivityEntry) -> bool:
        """Append an entry. Returns False if it could not be stored."""

    @abstractmethod
    async def get_entries(self, game_id: str) -> list[ActivityEntry]:
        """Get all entries for a game, oldest first."""

    @abstractmethod
    async def subscribe(self, game_id: str, handler: EntriesHandler) -> Unsubscribe:
        """Call handler with the full entry list after every append."""


class MemoryActivityLog(ActivityLog):
    """In-process activity log."""

    def __init__(self) -> None:
        self._entries: dict[str, list[ActivityEntry]] = {}
        self._handlers: dict[str, list[EntriesHandler]] = {}

    async def add_entry(self, game_id: str, entry: ActivityEntry) -> bool:
        entries = self._entries.setdefault(game_id, [])
        entries.append(entry)
        entries.sort(key=lambda e: e.created_at)

        for handler in list(self._handlers.get(game_id, [])):
            try:
                await handler(list(entries))
            except Exception as e:
                logger.error(f"Error in activity log subscriber: {e}", exc_info=True)
        return True

    async def get_entries(self, game_id: str) -> list[ActivityEntry]:
        return list(self._entries.get(game_id, []))

    async def subscribe(self, game_id: str, handler: EntriesHandler) -> Unsubscribe:
        self._handlers.setdefault(game_id, []).append(handler)

        async def unsubscribe() -> None:
            handlers = self._handlers.get(game_id, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe


class RedisActivityLog(ActivityLog):
    """
    Redis-backed activity log.

    Key patterns:
    - syn:activity:{game_id}  -> List (JSON entries, append order)
    """

    ACTIVITY_KEY = "syn:activity:{game_id}"

    def __init__(
        self,
        redis_client: redis.Redis,
        pubsub: GamePubSub,
        ttl: timedelta = timedelta(hours=24),
    ):
        self.redis = redis_client
        self.pubsub = pubsub
        self.ttl = ttl

    def _key(self, game_id: str) -> str:
        return self.ACTIVITY_KEY.format(game_id=game_id)

    async def add_entry(self, game_id: str, entry: ActivityEntry) -> bool:
        try:
            pipe = self.redis.pipeline()
            pipe.rpush(self._key(game_id), json.dumps(entry.to_dict()))
            pipe.expire(self._key(game_id), int(self.ttl.total_seconds()))
            await pipe.execute()

            await self.pubsub.publish(PubSubMessage(
                type=MessageType.ACTIVITY,
                game_id=game_id,
                data={"entry": entry.to_dict()},
            ))
            return True
        except redis.RedisError as e:
            logger.error(f"Error adding activity entry for {game_id}: {e}")
            return False

    async def get_entries(self, game_id: str) -> list[ActivityEntry]:
        raw_entries = await self.redis.lrange(self._key(game_id), 0, -1)
        entries = []
        for raw in raw_entries:
            if isinstance(raw, bytes):
                raw = raw.decode()
            entries.append(ActivityEntry.from_dict(json.loads(raw)))
        entries.sort(key=lambda e: e.created_at)
        return entries

    async def subscribe(self, game_id: str, handler: EntriesHandler) -> Unsubscribe:

        async def on_message(msg: PubSubMessage) -> None:
            if msg.type == MessageType.ACTIVITY:
                await handler(await self.get_entries(game_id))

        await self.pubsub.start()
        await self.pubsub.subscribe(game_id, on_message)

        async def unsubscribe() -> None:
            await self.pubsub.remove_handler(game_id, on_message)

        return unsubscribe
