"""
Per-client game driver for Screw Your Neighbor.

A GameClient is what a front end talks to. It turns user actions into
engine calls, writes the complete session document after every state
change, narrates what happened to the activity log, and keeps the local
session converged with other clients through a SyncController.

There is no server process. Whichever client performs an action also
drives the turn cascade that follows it (auto-skips, moving the turn
pointer, ending the round), persisting each intermediate state so the
other clients can follow along step by step.
"""

import asyncio
import random
import time
from dataclasses import replace
from typing import Awaitable, Callable, Optional

from config import ClientConfig, config
from constants import TIE_GAME
from errors import GameError, NotHostError, NotYourTurnError, RoundNotActiveError
from game import GameSession, GameState, Player
from identity import ClientIdentity
from lobby import create_session, generate_game_code, join_session, normalize_game_code, start_session
from logging_config import get_logger
from rounds import ExchangeOutcome, deal_new_round, end_round, exchange_card, keep_card, next_round
from stores.activity_log import ActivityEntry, ActivityLog, ActivityType
from stores.base import GameStore
from sync import GraceMarkers, SyncController
from turns import StepKind, step_turn

logger = get_logger(__name__)

# Attempts at finding an unused game code before giving up
MAX_CODE_ATTEMPTS = 10


def now_ms() -> int:
    return int(time.time() * 1000)


class GameClient:
    """
    One client's handle on one game.

    Attributes:
        session: The local copy of the session (None outside a game).
        identity: This client's seat bindings.
        markers: Times of this client's own round-end and game-start.
    """

    def __init__(
        self,
        store: GameStore,
        identity: Optional[ClientIdentity] = None,
        activity_log: Optional[ActivityLog] = None,
        cfg: ClientConfig = config,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], int] = now_ms,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            store: Shared game store.
            identity: Seat bindings (a fresh in-memory identity if None).
            activity_log: Narration feed (narration is skipped if None).
            cfg: Client configuration.
            clock: Monotonic clock for grace windows.
            wall_clock: Epoch milliseconds for lastUpdated and log entries.
            rng: Random source for game codes and shuffles.
            sleep: Awaitable delay used to pace the turn cascade.
        """
        self.store = store
        self.identity = identity or ClientIdentity(directory=cfg.IDENTITY_DIR or None)
        self.activity_log = activity_log
        self.cfg = cfg
        self.clock = clock
        self.wall_clock = wall_clock
        self.rng = rng or random.Random()
        self.sleep = sleep

        self.session: Optional[GameSession] = None
        self.markers = GraceMarkers()
        self._sync: Optional[SyncController] = None
        self.log = logger.with_context(client_tag=self.identity.client_tag)

    # -------------------------------------------------------------------------
    # Local view
    # -------------------------------------------------------------------------

    @property
    def game_id(self) -> Optional[str]:
        return self.session.game_id if self.session else None

    @property
    def my_seat_id(self) -> Optional[int]:
        """This client's seat, taken from its own binding only."""
        if self.session is None:
            return None
        return self.identity.seat_for(self.session.game_id)

    @property
    def is_my_turn(self) -> bool:
        session = self.session
        if session is None or session.game_state != GameState.PLAYING or session.reveal_cards:
            return False
        return self.my_seat_id is not None and session.current_player_id == self.my_seat_id

    def client_view(self) -> Optional[dict]:
        """The session as this client may display it (other hidden cards blanked)."""
        if self.session is None:
            return None
        return self.session.to_client_dict(self.my_seat_id)

    async def apply_remote(self, session: GameSession) -> None:
        """Adopt a session reconciled from the store."""
        self.session = session
        self.log.debug(f"Adopted remote state (version {session.version})")

    # -------------------------------------------------------------------------
    # Lobby
    # -------------------------------------------------------------------------

    async def create_game(self, host_name: str, num_players: Optional[int] = None) -> GameSession:
        """
        Create a game with this client as host.

        Raises:
            EmptyNameError: host_name is blank.
        """
        game_id = await self._unused_game_code()
        session = create_session(
            game_id,
            host_name,
            num_players or self.cfg.DEFAULT_NUM_PLAYERS,
        )
        host = session.get_player(session.host_id)

        await self._publish(session)
        self._bind(session.game_id, host)
        await self._start_sync()

        self.log.info(f"Created game {session.game_id} for {session.num_players} players")
        return self.session

    async def join_game(self, game_id: str, player_name: str) -> Player:
        """
        Take the next free seat in an existing game.

        Raises:
            JoinError: The join was rejected (the stored game is unchanged).
        """
        game_id = normalize_game_code(game_id)
        document = await self.store.load(game_id)
        current = GameSession.from_dict(document) if document else None

        session, player = join_session(current, player_name)

        await self._publish(session)
        self._bind(session.game_id, player)
        await self._start_sync()

        self.log.info(f"{player.name} joined game {session.game_id} at seat {player.id}")
        return player

    async def start_game(self) -> GameSession:
        """
        Start the game (host only) and deal the first round.

        Raises:
            NotHostError: This client is not the host.
            NotEnoughPlayersError: Fewer than two seats are taken.
        """
        await self.refresh()
        session = start_session(self._require_session(), self.my_seat_id)
        self.markers.record_game_start(self.clock())

        await self._narrate(
            f"Game started with {len(session.players)} players!",
            ActivityType.SYSTEM,
        )
        self.log.info(f"Game {session.game_id} started with {len(session.players)} players")
        return await self._deal(session)

    async def refresh(self) -> bool:
        """Reconcile with the store right now instead of waiting for the next poll."""
        if self._sync is None:
            return False
        return await self._sync.sync_once()

    # -------------------------------------------------------------------------
    # Turn actions
    # -------------------------------------------------------------------------

    async def keep_card(self) -> GameSession:
        """
        Keep this client's card and pass the turn on.

        Raises:
            NotYourTurnError: It's not this client's turn.
            RoundNotActiveError: No round is being played.
        """
        session = self._require_turn()
        seat_id = session.current_player_id

        session = await self._publish(replace(session, players=keep_card(session.players, seat_id)))
        await self._narrate("kept their card", seat_id=seat_id)

        await self.sleep(self.cfg.TURN_DELAY_SECONDS)
        return await self._run_turns(session)

    async def exchange_card(self) -> ExchangeOutcome:
        """
        Exchange this client's card and pass the turn on.

        The dealer draws from the deck; anyone else swaps with their left
        neighbor unless the neighbor holds a King.

        Returns:
            How the exchange resolved.

        Raises:
            NotYourTurnError: It's not this client's turn.
            RoundNotActiveError: No round is being played.
        """
        session = self._require_turn()
        seat_id = session.current_player_id

        result = exchange_card(session.players, seat_id, session.deck, self.rng)
        session = await self._publish(replace(session, players=result.roster, deck=result.deck))

        if result.outcome == ExchangeOutcome.DECK:
            await self._narrate("exchanged with the deck", seat_id=seat_id)
        else:
            neighbor = session.get_player(result.neighbor_id)
            if result.outcome == ExchangeOutcome.NEIGHBOR:
                await self._narrate(f"exchanged cards with {neighbor.name}", seat_id=seat_id)
            else:
                await self._narrate(
                    f"couldn't exchange, {neighbor.name} has a King",
                    seat_id=seat_id,
                )

        await self.sleep(self.cfg.TURN_DELAY_SECONDS)
        await self._run_turns(session)
        return result.outcome

    async def next_round(self) -> GameSession:
        """
        Rotate the dealer and deal the next round (host only).

        Raises:
            NotHostError: This client isn't seated as the host.
            RoundNotActiveError: The current round hasn't been resolved,
                or the game is over.
        """
        session = self._require_session()
        if not self.identity.is_mine(session.game_id, session.host_id):
            raise NotHostError()
        if session.game_state != GameState.PLAYING or not session.reveal_cards:
            raise RoundNotActiveError("The round is not over yet")

        rotated = next_round(session.players)
        session = replace(
            session,
            players=rotated.roster,
            current_player_id=rotated.dealer_id,
            reveal_cards=False,
            round_result=None,
        )
        session = await self._publish(session)

        dealer = session.get_player(rotated.dealer_id)
        await self._narrate(
            f"New round started! {dealer.name} is now the dealer.",
            ActivityType.SYSTEM,
            seat_id=dealer.id,
        )
        return await self._deal(session)

    async def reset_game(self) -> None:
        """
        Leave the game and forget this client's seat.

        The host also deletes the shared document.
        """
        session = self.session
        await self.stop()

        if session is not None and self.identity.is_mine(session.game_id, session.host_id):
            await self.store.delete(session.game_id)
            self.log.info(f"Game {session.game_id} deleted by host")

        self.identity.clear()
        self.markers.reset()
        self.session = None
        self.log = logger.with_context(client_tag=self.identity.client_tag)

    async def stop(self) -> None:
        """Stop reconciling with the store."""
        if self._sync is not None:
            await self._sync.stop()
            self._sync = None

    # -------------------------------------------------------------------------
    # Turn cascade
    # -------------------------------------------------------------------------

    async def _deal(self, session: GameSession) -> GameSession:
        dealt = deal_new_round(session.players, session.deck, self.rng)
        session = replace(
            session,
            players=dealt.roster,
            deck=dealt.deck,
            current_player_id=dealt.first_actor_id,
            reveal_cards=False,
            round_result=None,
        )
        session = await self._publish(session)
        return await self._run_turns(session)

    async def _run_turns(self, session: GameSession) -> GameSession:
        """
        Step the turn machine until someone must act or the round ends.

        Every step is persisted before the next one runs.
        """
        while True:
            step = step_turn(session.players, session.current_player_id)

            if step.kind == StepKind.READY:
                return session

            if step.kind == StepKind.ROUND_COMPLETE:
                return await self._finish_round(session)

            if step.kind == StepKind.SKIP:
                session = await self._publish(replace(session, players=step.roster))
                skipped = session.get_player(step.actor_id)
                reason = "holds a King" if skipped.has_king else "neighbor holds a King"
                await self._narrate(f"was skipped ({reason})", seat_id=skipped.id)
                await self.sleep(self.cfg.SKIP_DELAY_SECONDS)
            else:
                session = await self._publish(replace(session, current_player_id=step.actor_id))

    async def _finish_round(self, session: GameSession) -> GameSession:
        outcome = end_round(session.players)
        self.markers.record_round_end(self.clock())

        session = replace(
            session,
            players=outcome.roster,
            reveal_cards=True,
            round_result=outcome.result,
            winner=outcome.winner,
            game_state=GameState.GAME_OVER if outcome.winner else GameState.PLAYING,
        )
        session = await self._publish(session)

        result = outcome.result
        await self._narrate(
            f"Round ended! Lowest card: {result.lowest_value}. "
            f"{', '.join(result.losers)} lost a chip.",
            ActivityType.ROUND,
        )
        if result.eliminated_players:
            await self._narrate(
                f"{', '.join(result.eliminated_players)} eliminated!",
                ActivityType.SYSTEM,
            )
        if outcome.winner == TIE_GAME:
            await self._narrate(
                "Game ended in a tie! All remaining players eliminated.",
                ActivityType.SYSTEM,
            )
        elif outcome.winner:
            await self._narrate(f"{outcome.winner} wins the game!", ActivityType.SYSTEM)

        self.log.info(
            f"Round over in {session.game_id}: losers={list(result.losers)} "
            f"winner={outcome.winner}"
        )
        return session

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_session(self) -> GameSession:
        if self.session is None:
            raise RoundNotActiveError("Not in a game")
        return self.session

    def _require_turn(self) -> GameSession:
        session = self._require_session()
        if session.game_state != GameState.PLAYING or session.reveal_cards:
            raise RoundNotActiveError("No round in progress")
        if self.my_seat_id is None or session.current_player_id != self.my_seat_id:
            raise NotYourTurnError("It's not your turn")
        return session

    async def _publish(self, session: GameSession) -> GameSession:
        """Write the complete document, then make it the local session."""
        session = replace(
            session,
            version=session.version + 1,
            last_updated=self.wall_clock(),
        )
        await self.store.save(session.to_dict())
        self.session = session
        return session

    async def _unused_game_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_game_code(self.rng, self.cfg.GAME_CODE_LENGTH)
            if await self.store.load(code) is None:
                return code
        raise GameError("Could not allocate a game code")

    def _bind(self, game_id: str, player: Player) -> None:
        self.identity.bind(game_id, player.id, player.name)
        self.log = self.log.with_context(game_id=game_id, seat_id=player.id)

    async def _start_sync(self) -> None:
        await self.stop()
        self._sync = SyncController(
            self.store,
            self.session.game_id,
            get_local=lambda: self.session,
            on_update=self.apply_remote,
            markers=self.markers,
            clock=self.clock,
            interval=self.cfg.POLL_INTERVAL_SECONDS,
            start_delay=self.cfg.POLL_START_DELAY_SECONDS,
            reveal_grace=self.cfg.REVEAL_GRACE_SECONDS,
            turn_grace=self.cfg.TURN_GRACE_SECONDS,
        )
        await self._sync.start()

    async def _narrate(
        self,
        action: str,
        activity_type: ActivityType = ActivityType.ACTION,
        seat_id: Optional[int] = None,
    ) -> None:
        """Append an activity log entry. Failures are logged, never raised."""
        if self.activity_log is None or self.session is None:
            return

        if seat_id is None:
            seat_id = self.my_seat_id
        player_name = ""
        if seat_id is not None:
            player_name = self.session.get_player(seat_id).name

        entry = ActivityEntry(
            seat_id=seat_id,
            player_name=player_name,
            action=action,
            type=activity_type,
            created_at=self.wall_clock(),
        )
        if not await self.activity_log.add_entry(self.session.game_id, entry):
            self.log.warning(f"Activity entry dropped: {action}")
