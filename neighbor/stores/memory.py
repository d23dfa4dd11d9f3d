"""
In-process game state store.

Used when no shared backend is configured, and as the local substitute
after the shared store fails. Documents are kept as JSON strings so every
load returns a fresh copy, just like a remote store would. Clients in the
same process that share one instance see each other's writes.
"""

import json
import logging
from typing import Optional

from stores.base import DocumentHandler, GameStore, Unsubscribe

logger = logging.getLogger(__name__)


class MemoryGameStore(GameStore):
    """Local-only session document store."""

    supports_subscribe = True

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}
        self._handlers: dict[str, list[DocumentHandler]] = {}

    async def save(self, document: dict) -> bool:
        game_id = document["gameId"]
        raw = json.dumps(document)
        self._documents[game_id] = raw
        logger.debug(f"Saved game {game_id} locally (version {document.get('version')})")

        for handler in list(self._handlers.get(game_id, [])):
            try:
                await handler(json.loads(raw))
            except Exception as e:
                logger.error(f"Error in store subscriber for {game_id}: {e}", exc_info=True)
        return True

    async def load(self, game_id: str) -> Optional[dict]:
        raw = self._documents.get(game_id)
        if raw is None:
            return None
        return json.loads(raw)

    async def delete(self, game_id: str) -> None:
        self._documents.pop(game_id, None)

    async def subscribe(self, game_id: str, handler: DocumentHandler) -> Unsubscribe:
        self._handlers.setdefault(game_id, []).append(handler)

        async def unsubscribe() -> None:
            handlers = self._handlers.get(game_id, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(game_id, None)

        return unsubscribe
