"""
Tests for game creation, joining, and starting.

Run with: pytest test_lobby.py -v
"""

import random
from dataclasses import replace

import pytest

from errors import (
    EmptyNameError, GameAlreadyStartedError, GameFullError, GameNotFoundError,
    JoinError, NameTakenError, NotEnoughPlayersError, NotHostError,
)
from game import GameState
from lobby import (
    CODE_ALPHABET, create_session, generate_game_code, join_session,
    normalize_game_code, start_session,
)


class TestGameCode:

    def test_code_length_and_alphabet(self):
        code = generate_game_code(random.Random(3))
        assert len(code) == 6
        assert all(ch in CODE_ALPHABET for ch in code)
        assert code == code.upper()

    def test_custom_length(self):
        assert len(generate_game_code(random.Random(3), length=8)) == 8

    def test_normalize(self):
        assert normalize_game_code("  ab12cd ") == "AB12CD"


class TestCreate:

    def test_host_takes_seat_zero(self):
        session = create_session("ab12cd", " Alice ", 4)

        assert session.game_id == "AB12CD"
        assert session.game_state == GameState.WAITING
        assert session.num_players == 4
        host = session.players[0]
        assert host.id == 0
        assert host.name == "Alice"
        assert host.is_host
        assert host.is_dealer
        assert host.chips == 3
        assert session.host_id == 0

    def test_seat_count_is_clamped(self):
        assert create_session("AAAAAA", "Alice", 1).num_players == 2
        assert create_session("AAAAAA", "Alice", 50).num_players == 10

    def test_blank_host_name(self):
        with pytest.raises(EmptyNameError):
            create_session("AAAAAA", "   ", 4)


class TestJoin:

    def setup_method(self):
        self.session = create_session("AB12CD", "Alice", 3)

    def test_join_takes_next_seat(self):
        session, player = join_session(self.session, "Bob")
        assert player.id == 1
        assert not player.is_host
        assert not player.is_dealer
        assert [p.name for p in session.players] == ["Alice", "Bob"]
        # The original value is untouched
        assert len(self.session.players) == 1

    def test_name_is_trimmed(self):
        _, player = join_session(self.session, "  Bob  ")
        assert player.name == "Bob"

    def test_empty_name(self):
        with pytest.raises(EmptyNameError):
            join_session(self.session, "  ")

    def test_game_not_found(self):
        with pytest.raises(GameNotFoundError):
            join_session(None, "Bob")

    def test_game_already_started(self):
        started = replace(self.session, game_state=GameState.PLAYING)
        with pytest.raises(GameAlreadyStartedError):
            join_session(started, "Bob")

    def test_game_full(self):
        session, _ = join_session(self.session, "Bob")
        session, _ = join_session(session, "Carol")
        with pytest.raises(GameFullError):
            join_session(session, "Dave")

    def test_duplicate_name_case_insensitive(self):
        with pytest.raises(NameTakenError):
            join_session(self.session, "aLICE")

    def test_join_errors_share_a_base(self):
        with pytest.raises(JoinError) as exc_info:
            join_session(self.session, "alice")
        assert str(exc_info.value) == "Player name already taken"


class TestStart:

    def setup_method(self):
        session = create_session("AB12CD", "Alice", 4)
        self.session, _ = join_session(session, "Bob")

    def test_host_starts(self):
        started = start_session(self.session, 0)
        assert started.game_state == GameState.PLAYING

    def test_only_host_starts(self):
        with pytest.raises(NotHostError):
            start_session(self.session, 1)

    def test_needs_two_players(self):
        alone = create_session("AB12CD", "Alice", 4)
        with pytest.raises(NotEnoughPlayersError):
            start_session(alone, 0)

    def test_cannot_start_twice(self):
        started = start_session(self.session, 0)
        with pytest.raises(GameAlreadyStartedError):
            start_session(started, 0)
