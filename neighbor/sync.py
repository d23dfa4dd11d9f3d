"""
Reconciliation of a client's local session against the shared store.

Each client keeps its own copy of the session and writes the whole
document on every move. There is no server arbitrating between clients,
so every client also runs a background pass that fetches the stored
document and folds it into its local copy:

    - gameState is adopted whenever it differs.
    - The roster is replaced wholesale (never merged field by field) when
      the stored one differs in length or in any seat.
    - A reveal -> hidden flip is ignored for a grace window after this
      client ended a round, and a turn-pointer change is ignored for a
      grace window after this client started the game. These stop a slow
      echo of an older write from visibly undoing a fresh local change.
      A flip that arrives with a new round (round result cleared and a
      different roster) is always adopted.
    - Documents with a lower version than the local copy are stale reads
      and are ignored.

Writes stay last-writer-wins; none of this prevents lost updates between
two clients racing each other.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

from config import config
from game import GameSession, Roster
from stores.base import GameStore, Unsubscribe

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class GraceMarkers:
    """
    Times (on the controller's clock) of this client's own transitions.

    Attributes:
        round_ended_at: When this client last ended a round.
        game_started_at: When this client started the game.
    """

    round_ended_at: Optional[float] = None
    game_started_at: Optional[float] = None

    def record_round_end(self, now: float) -> None:
        self.round_ended_at = now

    def record_game_start(self, now: float) -> None:
        self.game_started_at = now

    def reset(self) -> None:
        self.round_ended_at = None
        self.game_started_at = None


def _within(marker: Optional[float], now: float, window: float) -> bool:
    return marker is not None and now - marker < window


def roster_changed(local: Roster, remote: Roster) -> bool:
    """Check whether the stored roster differs from the local one in any seat."""
    if len(local) != len(remote):
        return True
    local_by_id = {p.id: p for p in local}
    return any(local_by_id.get(p.id) != p for p in remote)


def starts_new_round(local: GameSession, remote: GameSession) -> bool:
    """Check whether remote is a later round than the revealed local one."""
    return remote.round_result is None and roster_changed(local.players, remote.players)


def reconcile(
    local: GameSession,
    remote: GameSession,
    markers: GraceMarkers,
    now: float,
    reveal_grace: float = config.REVEAL_GRACE_SECONDS,
    turn_grace: float = config.TURN_GRACE_SECONDS,
) -> GameSession:
    """
    Fold a fetched document into the local session.

    Args:
        local: This client's current session.
        remote: Session decoded from the store.
        markers: This client's own recent transitions.
        now: Current time on the markers' clock.
        reveal_grace: Seconds a local round end protects revealCards.
        turn_grace: Seconds a local game start protects the turn pointer.

    Returns:
        The session the client should hold (local itself if nothing changes).
    """
    if remote.game_id != local.game_id or remote.version < local.version:
        return local

    changes: dict = {}

    if remote.game_state != local.game_state:
        changes["game_state"] = remote.game_state

    if roster_changed(local.players, remote.players):
        changes["players"] = remote.players

    if remote.reveal_cards != local.reveal_cards:
        hiding = local.reveal_cards and not remote.reveal_cards
        if (
            hiding
            and _within(markers.round_ended_at, now, reveal_grace)
            and not starts_new_round(local, remote)
        ):
            logger.debug("Ignoring remote reveal reset inside grace window")
        else:
            changes["reveal_cards"] = remote.reveal_cards

    if remote.current_player_id != local.current_player_id:
        if _within(markers.game_started_at, now, turn_grace):
            logger.debug("Ignoring remote turn change inside grace window")
        else:
            changes["current_player_id"] = remote.current_player_id

    for name in ("deck", "round_result", "winner", "num_players", "host_id"):
        if getattr(remote, name) != getattr(local, name):
            changes[name] = getattr(remote, name)

    if not changes:
        return local

    changes["version"] = remote.version
    changes["last_updated"] = remote.last_updated
    return replace(local, **changes)


class SyncController:
    """
    Background reconciliation for one client and one game.

    Polls the store on a fixed interval and, when the store can push
    changes, also reconciles on every pushed document. Passes never run
    concurrently with each other.
    """

    def __init__(
        self,
        store: GameStore,
        game_id: str,
        get_local: Callable[[], Optional[GameSession]],
        on_update: Callable[[GameSession], Awaitable[None]],
        markers: Optional[GraceMarkers] = None,
        clock: Clock = time.monotonic,
        interval: float = config.POLL_INTERVAL_SECONDS,
        start_delay: float = config.POLL_START_DELAY_SECONDS,
        reveal_grace: float = config.REVEAL_GRACE_SECONDS,
        turn_grace: float = config.TURN_GRACE_SECONDS,
    ):
        """
        Initialize the controller.

        Args:
            store: Shared game store.
            game_id: Game to follow.
            get_local: Returns this client's current session.
            on_update: Called with the reconciled session when it changed.
            markers: Grace window markers shared with the client.
            clock: Time source for grace windows.
            interval: Seconds between polls.
            start_delay: Seconds before the first poll.
            reveal_grace: See reconcile().
            turn_grace: See reconcile().
        """
        self.store = store
        self.game_id = game_id
        self.get_local = get_local
        self.on_update = on_update
        self.markers = markers or GraceMarkers()
        self.clock = clock
        self.interval = interval
        self.start_delay = start_delay
        self.reveal_grace = reveal_grace
        self.turn_grace = turn_grace
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        """Start polling (and listening, if the store supports it)."""
        if self._task is not None:
            return

        if self.store.supports_subscribe:
            self._unsubscribe = await self.store.subscribe(self.game_id, self.apply_document)

        self._task = asyncio.create_task(self._poll())
        logger.info(f"Sync started for game {self.game_id}")

    async def stop(self) -> None:
        """Stop polling and detach from the store."""
        if self._unsubscribe is not None:
            await self._unsubscribe()
            self._unsubscribe = None

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info(f"Sync stopped for game {self.game_id}")

    async def sync_once(self) -> bool:
        """
        Run one reconciliation pass.

        Returns:
            True if the local session changed.
        """
        document = await self.store.load(self.game_id)
        return await self.apply_document(document)

    async def apply_document(self, document: Optional[dict]) -> bool:
        """Reconcile a document fetched from (or pushed by) the store."""
        if not document:
            return False

        async with self._lock:
            local = self.get_local()
            if local is None:
                return False

            remote = GameSession.from_dict(document)
            merged = reconcile(
                local,
                remote,
                self.markers,
                self.clock(),
                reveal_grace=self.reveal_grace,
                turn_grace=self.turn_grace,
            )
            if merged is local:
                return False

            await self.on_update(merged)
            return True

    async def _poll(self) -> None:
        """Main polling loop."""
        await asyncio.sleep(self.start_delay)
        while True:
            try:
                await self.sync_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Sync pass failed for game {self.game_id}: {e}", exc_info=True)
            await asyncio.sleep(self.interval)
