"""
Tests for reconciliation between a client's local session and the store.

These tests cover:
- reconcile(): adoption rules, wholesale roster replacement, grace windows,
  and stale-version rejection
- SyncController: polling, store push, and teardown

Clocks are injected so no test waits out a real grace window.
"""

import asyncio
from dataclasses import replace
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from game import Card, GameSession, GameState, Player, Rank, RoundResult, Suit
from stores.base import GameStore
from stores.memory import MemoryGameStore
from sync import GraceMarkers, SyncController, reconcile, roster_changed, starts_new_round


def make_session(**overrides) -> GameSession:
    players = (
        Player(id=0, name="Alice", is_dealer=True, is_host=True).with_card(Card(Suit.HEARTS, Rank.NINE)),
        Player(id=1, name="Bob").with_card(Card(Suit.CLUBS, Rank.FIVE)),
    )
    session = GameSession(
        game_id="AB12CD",
        num_players=2,
        game_state=GameState.PLAYING,
        players=players,
        current_player_id=1,
        version=5,
    )
    return replace(session, **overrides)


# =============================================================================
# reconcile()
# =============================================================================

class TestReconcile:

    def setup_method(self):
        self.markers = GraceMarkers()
        self.local = make_session()

    def test_nothing_to_adopt_returns_local(self):
        remote = replace(self.local, last_updated=123)
        assert reconcile(self.local, remote, self.markers, now=0.0) is self.local

    def test_adopts_game_state(self):
        remote = replace(self.local, game_state=GameState.GAME_OVER, winner="Alice", version=6)
        merged = reconcile(self.local, remote, self.markers, now=0.0)
        assert merged.game_state == GameState.GAME_OVER
        assert merged.winner == "Alice"
        assert merged.version == 6

    def test_roster_replaced_when_chips_differ(self):
        players = (self.local.players[0], replace(self.local.players[1], chips=2))
        remote = replace(self.local, players=players, version=6)
        merged = reconcile(self.local, remote, self.markers, now=0.0)
        assert merged.players == players

    def test_roster_replaced_when_seat_added(self):
        players = self.local.players + (Player(id=2, name="Carol"),)
        remote = replace(self.local, players=players, version=6)
        merged = reconcile(self.local, remote, self.markers, now=0.0)
        assert len(merged.players) == 3

    def test_roster_replaced_wholesale(self):
        swapped = (
            self.local.players[0].with_card(Card(Suit.CLUBS, Rank.FIVE)),
            replace(self.local.players[1].with_card(Card(Suit.HEARTS, Rank.NINE)), has_acted=True),
        )
        remote = replace(self.local, players=swapped, version=6)
        merged = reconcile(self.local, remote, self.markers, now=0.0)
        assert merged.players == swapped
        assert merged.players[1].has_acted

    def test_roster_changed(self):
        players = self.local.players
        assert not roster_changed(players, players)
        assert roster_changed(players, players[:1])
        assert roster_changed(players, (players[0], replace(players[1], chips=1)))

    def test_stale_version_ignored(self):
        remote = replace(self.local, game_state=GameState.WAITING, version=4)
        assert reconcile(self.local, remote, self.markers, now=0.0) is self.local

    def test_other_game_ignored(self):
        remote = replace(self.local, game_id="ZZZZZZ", version=9)
        assert reconcile(self.local, remote, self.markers, now=0.0) is self.local

    def test_reveal_reset_ignored_inside_grace(self):
        local = replace(self.local, reveal_cards=True, round_result=RoundResult(5, ("Bob",)))
        remote = replace(local, reveal_cards=False, version=6)
        self.markers.record_round_end(100.0)

        merged = reconcile(local, remote, self.markers, now=110.0)
        assert merged.reveal_cards is True

    def test_reveal_reset_adopted_after_grace(self):
        local = replace(self.local, reveal_cards=True)
        remote = replace(local, reveal_cards=False, version=6)
        self.markers.record_round_end(100.0)

        merged = reconcile(local, remote, self.markers, now=116.0)
        assert merged.reveal_cards is False

    def test_new_round_hides_cards_inside_grace(self):
        local = replace(self.local, reveal_cards=True, round_result=RoundResult(5, ("Bob",)))
        dealt = (
            replace(self.local.players[0].with_card(Card(Suit.SPADES, Rank.FOUR)), is_dealer=False),
            replace(self.local.players[1].with_card(Card(Suit.SPADES, Rank.SIX)), is_dealer=True),
        )
        remote = replace(local, players=dealt, reveal_cards=False, round_result=None, version=7)
        self.markers.record_round_end(100.0)

        merged = reconcile(local, remote, self.markers, now=101.0)
        assert merged.reveal_cards is False
        assert merged.round_result is None
        assert merged.players == dealt

    def test_starts_new_round(self):
        revealed = replace(self.local, reveal_cards=True, round_result=RoundResult(5, ("Bob",)))
        redealt = replace(
            self.local,
            players=(self.local.players[0].with_card(Card(Suit.SPADES, Rank.FOUR)), self.local.players[1]),
        )
        assert starts_new_round(revealed, redealt)
        # Same roster, or a result still present, is the same round
        assert not starts_new_round(revealed, replace(revealed, round_result=None))
        assert not starts_new_round(revealed, replace(redealt, round_result=revealed.round_result))

    def test_reveal_always_adopted(self):
        self.markers.record_round_end(100.0)
        remote = replace(self.local, reveal_cards=True, version=6)
        merged = reconcile(self.local, remote, self.markers, now=101.0)
        assert merged.reveal_cards is True

    def test_turn_change_ignored_after_local_start(self):
        self.markers.record_game_start(50.0)
        remote = replace(self.local, current_player_id=0, version=6)

        merged = reconcile(self.local, remote, self.markers, now=52.0)
        assert merged.current_player_id == 1

        merged = reconcile(self.local, remote, self.markers, now=53.5)
        assert merged.current_player_id == 0

    def test_custom_grace_windows(self):
        self.markers.record_game_start(50.0)
        remote = replace(self.local, current_player_id=0, version=6)
        merged = reconcile(self.local, remote, self.markers, now=52.0, turn_grace=1.0)
        assert merged.current_player_id == 0

    def test_adopts_deck(self):
        remote = replace(self.local, deck=(Card(Suit.SPADES, Rank.ACE),), version=6)
        merged = reconcile(self.local, remote, self.markers, now=0.0)
        assert merged.deck == remote.deck

    def test_markers_reset(self):
        self.markers.record_game_start(1.0)
        self.markers.record_round_end(2.0)
        self.markers.reset()
        assert self.markers.game_started_at is None
        assert self.markers.round_ended_at is None


# =============================================================================
# SyncController
# =============================================================================

class PollingOnlyStore(GameStore):
    """Store that can't push changes."""

    def __init__(self):
        self.documents: dict[str, dict] = {}

    async def save(self, document: dict) -> bool:
        self.documents[document["gameId"]] = document
        return True

    async def load(self, game_id: str) -> Optional[dict]:
        return self.documents.get(game_id)

    async def delete(self, game_id: str) -> None:
        self.documents.pop(game_id, None)


class LocalHolder:
    """Stands in for a client's local session."""

    def __init__(self, session: GameSession):
        self.session = session
        self.updates = 0

    def get(self) -> GameSession:
        return self.session

    async def apply(self, session: GameSession) -> None:
        self.session = session
        self.updates += 1


class TestSyncController:

    def setup_method(self):
        self.holder = LocalHolder(make_session())
        self.newer = replace(self.holder.session, current_player_id=0, version=6)

    def make_controller(self, store, **kwargs) -> SyncController:
        return SyncController(
            store,
            "AB12CD",
            get_local=self.holder.get,
            on_update=self.holder.apply,
            clock=lambda: 1000.0,
            **kwargs,
        )

    @pytest.mark.asyncio
    async def test_sync_once_adopts_store_document(self):
        store = MemoryGameStore()
        await store.save(self.newer.to_dict())
        controller = self.make_controller(store)

        assert await controller.sync_once() is True
        assert self.holder.session.current_player_id == 0
        assert self.holder.session.version == 6

        # Second pass finds nothing new
        assert await controller.sync_once() is False
        assert self.holder.updates == 1

    @pytest.mark.asyncio
    async def test_missing_document_is_ignored(self):
        controller = self.make_controller(MemoryGameStore())
        assert await controller.sync_once() is False
        assert self.holder.updates == 0

    @pytest.mark.asyncio
    async def test_no_local_session(self):
        store = MemoryGameStore()
        await store.save(self.newer.to_dict())
        controller = SyncController(
            store, "AB12CD", get_local=lambda: None, on_update=AsyncMock(),
        )
        assert await controller.sync_once() is False
        controller.on_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_push_from_store(self):
        store = MemoryGameStore()
        controller = self.make_controller(store, start_delay=60.0)
        await controller.start()
        try:
            await store.save(self.newer.to_dict())
            assert self.holder.session.current_player_id == 0
        finally:
            await controller.stop()

        # Detached: later saves no longer reach the client
        await store.save(replace(self.newer, current_player_id=1, version=7).to_dict())
        assert self.holder.session.version == 6
        assert not controller.running

    @pytest.mark.asyncio
    async def test_polling_without_push(self):
        store = PollingOnlyStore()
        controller = self.make_controller(store, start_delay=0.0, interval=0.01)
        await controller.start()
        try:
            await store.save(self.newer.to_dict())
            for _ in range(50):
                if self.holder.updates:
                    break
                await asyncio.sleep(0.01)
        finally:
            await controller.stop()

        assert self.holder.session.current_player_id == 0

    @pytest.mark.asyncio
    async def test_poll_survives_store_errors(self):
        calls = 0
        newer = self.newer.to_dict()

        async def flaky_load(game_id):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return newer

        store = PollingOnlyStore()
        store.load = flaky_load
        controller = self.make_controller(store, start_delay=0.0, interval=0.01)
        await controller.start()
        try:
            for _ in range(50):
                if self.holder.updates:
                    break
                await asyncio.sleep(0.01)
        finally:
            await controller.stop()

        assert calls >= 2
        assert self.holder.session.version == 6

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_tears_down(self):
        store = MemoryGameStore()
        controller = self.make_controller(store, start_delay=60.0)
        await controller.start()
        await controller.start()
        assert controller.running

        await controller.stop()
        assert not controller.running
        assert not store._handlers

        # Stopping twice is harmless
        await controller.stop()

    @pytest.mark.asyncio
    async def test_grace_markers_shared_with_client(self):
        markers = GraceMarkers()
        markers.record_game_start(999.0)
        store = MemoryGameStore()
        await store.save(self.newer.to_dict())
        controller = self.make_controller(store, markers=markers)

        # Turn pointer change is inside the 3s window (clock reads 1000)
        assert await controller.sync_once() is False
        assert self.holder.session.current_player_id == 1
        assert self.holder.updates == 0
