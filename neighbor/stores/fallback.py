"""
Shared store with a local fallback.

Store I/O failures never reach the game engine. The first time the primary
store fails, this wrapper logs a warning, switches to the local store for
good, and retries the operation there. From then on the client keeps
playing against local state only.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

import redis.asyncio as redis

from stores.base import DocumentHandler, GameStore, Unsubscribe
from stores.memory import MemoryGameStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors treated as "the shared store is unavailable"
STORE_ERRORS = (redis.RedisError, OSError)


class FallbackGameStore(GameStore):
    """Primary store that degrades to a local store on I/O failure."""

    supports_subscribe = True

    def __init__(self, primary: GameStore, fallback: Optional[GameStore] = None):
        self.primary = primary
        self.fallback = fallback or MemoryGameStore()
        self.degraded = False
        self._subscriptions: list[tuple[str, DocumentHandler]] = []
        self._fallback_unsubscribes: dict[tuple[str, DocumentHandler], Unsubscribe] = {}

    @property
    def active(self) -> GameStore:
        return self.fallback if self.degraded else self.primary

    async def _switch_to_fallback(self, error: Exception) -> None:
        logger.warning(f"Game store failed ({error!r}), falling back to local store")
        self.degraded = True
        for entry in self._subscriptions:
            self._fallback_unsubscribes[entry] = await self.fallback.subscribe(*entry)

    async def _call(self, op: Callable[[GameStore], Awaitable[T]]) -> T:
        if not self.degraded:
            try:
                return await op(self.primary)
            except STORE_ERRORS as e:
                await self._switch_to_fallback(e)
        return await op(self.fallback)

    async def save(self, document: dict) -> bool:
        return await self._call(lambda store: store.save(document))

    async def load(self, game_id: str) -> Optional[dict]:
        return await self._call(lambda store: store.load(game_id))

    async def delete(self, game_id: str) -> None:
        await self._call(lambda store: store.delete(game_id))

    async def subscribe(self, game_id: str, handler: DocumentHandler) -> Unsubscribe:
        entry = (game_id, handler)
        self._subscriptions.append(entry)
        primary_unsubscribe: Optional[Unsubscribe] = None

        if self.degraded:
            self._fallback_unsubscribes[entry] = await self.fallback.subscribe(game_id, handler)
        elif self.primary.supports_subscribe:
            try:
                primary_unsubscribe = await self.primary.subscribe(game_id, handler)
            except STORE_ERRORS as e:
                # Switching re-registers every subscription, this one included
                await self._switch_to_fallback(e)

        async def unsubscribe() -> None:
            if entry in self._subscriptions:
                self._subscriptions.remove(entry)
            fallback_unsubscribe = self._fallback_unsubscribes.pop(entry, None)
            if fallback_unsubscribe is not None:
                await fallback_unsubscribe()
            if primary_unsubscribe is not None:
                try:
                    await primary_unsubscribe()
                except STORE_ERRORS as e:
                    logger.warning(f"Error unsubscribing from primary game store: {e!r}")

        return unsubscribe

    async def close(self) -> None:
        try:
            await self.primary.close()
        except STORE_ERRORS as e:
            logger.warning(f"Error closing primary game store: {e!r}")
        await self.fallback.close()
