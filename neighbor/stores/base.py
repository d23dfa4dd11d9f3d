"""
Game state store interface.

A store holds exactly one document per game id and nothing else. It knows
nothing about game rules and never resolves conflicts: saves are full
upserts and the last writer wins.

Implementations:
    MemoryGameStore   - in-process, local-only
    RedisGameStore    - shared across processes, with pub/sub notifications
    FallbackGameStore - wraps a primary store and switches to a local one
                        after the first I/O failure
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

# Receives the full session document after every save
DocumentHandler = Callable[[dict], Awaitable[None]]

# Returned by subscribe(); awaiting it detaches the handler
Unsubscribe = Callable[[], Awaitable[None]]


class GameStore(ABC):
    """Key-value store for session documents, keyed by gameId."""

    supports_subscribe: bool = False

    @abstractmethod
    async def save(self, document: dict) -> bool:
        """
        Upsert the full document under document["gameId"].

        Returns:
            True if the document was stored.
        """

    @abstractmethod
    async def load(self, game_id: str) -> Optional[dict]:
        """Get the document for a game, or None if absent."""

    @abstractmethod
    async def delete(self, game_id: str) -> None:
        """Remove a game's document."""

    async def subscribe(self, game_id: str, handler: DocumentHandler) -> Unsubscribe:
        """
        Call handler with the new document after every save of a game.

        Stores that can't push changes raise NotImplementedError; callers
        check supports_subscribe and fall back to polling load().
        """
        raise NotImplementedError(f"{type(self).__name__} does not support subscriptions")

    async def close(self) -> None:
        """Release connections held by the store."""
