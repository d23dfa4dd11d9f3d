"""
Exception hierarchy for the game engine and client.

Three families:
    JoinError       - create/join/start rejected; session state is unchanged.
    ActionError     - a turn action the caller was not allowed to take.
    InvariantError  - the roster is corrupted or a seat id is unknown.
                      These indicate programming errors and must propagate.
"""

from typing import Optional


class GameError(Exception):
    """Base class for all game errors."""


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

class JoinError(GameError):
    """A create/join/start request was rejected."""

    message = "Failed to join game"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class EmptyNameError(JoinError):
    message = "Please enter your name"


class GameNotFoundError(JoinError):
    message = "Game not found or already started"


class GameAlreadyStartedError(JoinError):
    message = "Game not found or already started"


class GameFullError(JoinError):
    message = "Game is full"


class NameTakenError(JoinError):
    message = "Player name already taken"


class NotEnoughPlayersError(JoinError):
    message = "Need at least 2 players"


class NotHostError(JoinError):
    message = "Only the host can do that"


# ---------------------------------------------------------------------------
# Turn actions
# ---------------------------------------------------------------------------

class ActionError(GameError):
    """A turn action was rejected."""


class NotYourTurnError(ActionError):
    pass


class AlreadyActedError(ActionError):
    pass


class RoundNotActiveError(ActionError):
    pass


# ---------------------------------------------------------------------------
# Programming / invariant errors
# ---------------------------------------------------------------------------

class InvariantError(GameError):
    """The roster violates a game invariant."""


class UnknownSeatError(InvariantError):
    def __init__(self, seat_id: int):
        super().__init__(f"Unknown seat id: {seat_id}")
        self.seat_id = seat_id


class EmptyRingError(InvariantError):
    def __init__(self):
        super().__init__("No active players in the ring")


class MissingDealerError(InvariantError):
    def __init__(self):
        super().__init__("No dealer among the players")
