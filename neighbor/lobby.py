"""
Lobby rules for Screw Your Neighbor game sessions.

This module handles game creation, seating players, and the checks that
gate starting a game. It works on GameSession values only; saving them is
up to the caller.

A session in the lobby contains:
    - A unique 6-character code for joining
    - The roster of seated players (the host sits at seat 0 and deals first)
    - The target number of seats chosen by the host
"""

import random
import string
from dataclasses import replace
from typing import Optional

from constants import GAME_CODE_LENGTH, MAX_PLAYERS, MIN_PLAYERS, STARTING_CHIPS
from errors import (
    EmptyNameError,
    GameAlreadyStartedError,
    GameFullError,
    GameNotFoundError,
    NameTakenError,
    NotEnoughPlayersError,
    NotHostError,
)
from game import GameSession, GameState, Player

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_game_code(rng: Optional[random.Random] = None, length: int = GAME_CODE_LENGTH) -> str:
    """Generate a random game code (uppercase letters and digits)."""
    rng = rng or random
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(length))


def normalize_game_code(code: str) -> str:
    """Game codes are matched case-insensitively."""
    return code.strip().upper()


def create_session(game_id: str, host_name: str, num_players: int) -> GameSession:
    """
    Create a new session with the host seated.

    The host takes seat 0 and is the first dealer.

    Args:
        game_id: Code for the new game.
        host_name: Display name of the host.
        num_players: Target seat count (clamped to the allowed range).

    Returns:
        A session in the WAITING state.

    Raises:
        EmptyNameError: host_name is blank.
    """
    name = host_name.strip()
    if not name:
        raise EmptyNameError()

    host = Player(
        id=0,
        name=name,
        chips=STARTING_CHIPS,
        is_dealer=True,
        is_host=True,
    )
    return GameSession(
        game_id=normalize_game_code(game_id),
        num_players=max(MIN_PLAYERS, min(MAX_PLAYERS, num_players)),
        game_state=GameState.WAITING,
        players=(host,),
        current_player_id=0,
        host_id=0,
    )


def join_session(session: Optional[GameSession], player_name: str) -> tuple[GameSession, Player]:
    """
    Seat a new player.

    The new seat id is the current roster length, so ids follow join order.

    Args:
        session: The session loaded from the store (None if not found).
        player_name: Display name of the joining player.

    Returns:
        Tuple of (updated session, new player).

    Raises:
        EmptyNameError: player_name is blank.
        GameNotFoundError: No such game.
        GameAlreadyStartedError: The game is past the lobby.
        GameFullError: Every seat is taken.
        NameTakenError: Another seat has the same name (case-insensitive).
    """
    name = player_name.strip()
    if not name:
        raise EmptyNameError()

    if session is None:
        raise GameNotFoundError()

    if session.game_state != GameState.WAITING:
        raise GameAlreadyStartedError()

    if len(session.players) >= session.num_players:
        raise GameFullError()

    if session.player_by_name(name) is not None:
        raise NameTakenError()

    player = Player(id=len(session.players), name=name, chips=STARTING_CHIPS)
    return replace(session, players=session.players + (player,)), player


def start_session(session: GameSession, seat_id: int) -> GameSession:
    """
    Move a session from the lobby into play.

    Raises:
        NotHostError: seat_id is not the host.
        GameAlreadyStartedError: The game is not waiting to start.
        NotEnoughPlayersError: Fewer than MIN_PLAYERS seated.
    """
    if seat_id != session.host_id:
        raise NotHostError("Only the host can start the game")

    if session.game_state != GameState.WAITING:
        raise GameAlreadyStartedError()

    if len(session.players) < MIN_PLAYERS:
        raise NotEnoughPlayersError(f"Need at least {MIN_PLAYERS} players")

    return replace(session, game_state=GameState.PLAYING)
