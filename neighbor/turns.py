"""
Turn resolution for Screw Your Neighbor.

Turn order follows the ring of active (non-eliminated) seats in ascending
seat id order. The player to a seat's left is the next seat in the ring.

Auto-skip rules:
    - A player holding a King is skipped (a King can't be improved on).
    - A non-dealer whose left neighbor holds a King is skipped, since the
      exchange they would make is blocked anyway.

Turn advancement is an explicit state machine. step_turn() performs one
transition and returns the new roster and turn pointer; a driver calls it
repeatedly and persists after every step so each intermediate state is
visible to other clients. advance_turn() and settle_turn() run the same
steps to completion without I/O.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from errors import EmptyRingError
from game import Player, Roster, find_player, replace_player

logger = logging.getLogger(__name__)


class StepKind(str, Enum):
    """
    Result of a single turn step.

    ADVANCE: Pointer moved to the next seat that hasn't acted.
    SKIP: The seat under the pointer was marked as acted without acting.
    READY: The seat under the pointer must act.
    ROUND_COMPLETE: Every active seat has acted; the round must end.
    """

    ADVANCE = "advance"
    SKIP = "skip"
    READY = "ready"
    ROUND_COMPLETE = "round_complete"


@dataclass(frozen=True)
class TurnStep:
    kind: StepKind
    roster: Roster
    actor_id: Optional[int]


@dataclass(frozen=True)
class TurnResolution:
    """
    Outcome of running turn steps to completion.

    Attributes:
        roster: Roster after all auto-skips.
        actor_id: Seat that must act next (None once the round is complete).
        skipped: Seats auto-skipped on the way, in order.
        round_complete: Whether every active seat has acted.
    """

    roster: Roster
    actor_id: Optional[int]
    skipped: tuple[int, ...] = ()
    round_complete: bool = False


def active_players(roster: Roster) -> list[Player]:
    """Non-eliminated seats in ring (ascending id) order."""
    return sorted((p for p in roster if not p.eliminated), key=lambda p: p.id)


def next_active_after(roster: Roster, seat_id: int) -> Player:
    """
    Get the first active seat after seat_id in ring order.

    Works for eliminated seats too: the answer is relative to the seat's
    position, so rotation stays fair when a seat drops out.

    Raises:
        UnknownSeatError: seat_id is not in the roster.
        EmptyRingError: No active seats.
    """
    find_player(roster, seat_id)
    ring = active_players(roster)
    if not ring:
        raise EmptyRingError()
    for player in ring:
        if player.id > seat_id:
            return player
    return ring[0]


def left_neighbor(roster: Roster, seat_id: int) -> Player:
    """
    Get the seat to the left: the next active seat in the ring.

    Non-dealers exchange with this seat, and their skip rule checks it.
    """
    return next_active_after(roster, seat_id)


def should_skip(player: Player, roster: Roster) -> bool:
    """
    Check whether a seat's turn is taken automatically.

    A seat that has already acted is never skipped again.
    """
    if player.has_acted:
        return False

    if player.has_king:
        return True

    # The dealer exchanges with the deck, so only their own King matters
    if not player.is_dealer:
        return left_neighbor(roster, player.id).has_king

    return False


def all_acted(roster: Roster) -> bool:
    """Check whether every active seat has acted."""
    return all(p.has_acted for p in active_players(roster))


def mark_acted(roster: Roster, seat_id: int) -> Roster:
    player = find_player(roster, seat_id)
    return replace_player(roster, replace(player, has_acted=True))


def _next_unacted(ring: list[Player], seat_id: Optional[int]) -> Player:
    """Scan the ring just after seat_id (from position 0 if it isn't there)."""
    start = 0
    for idx, player in enumerate(ring):
        if player.id == seat_id:
            start = idx + 1
            break

    for offset in range(len(ring)):
        candidate = ring[(start + offset) % len(ring)]
        if not candidate.has_acted:
            return candidate
    raise EmptyRingError()


def step_turn(roster: Roster, actor_id: Optional[int]) -> TurnStep:
    """
    Perform one turn transition.

    If the seat under the pointer hasn't acted it is either auto-skipped
    (SKIP) or left to act (READY). Otherwise the pointer moves to the next
    seat that hasn't acted (ADVANCE). Once every active seat has acted the
    step reports ROUND_COMPLETE.

    A pointer at an eliminated seat (or None) falls back to scanning from
    ring position 0.

    Args:
        roster: Current roster.
        actor_id: Seat under the turn pointer.

    Returns:
        The step taken, with the new roster and pointer.
    """
    if actor_id is not None:
        find_player(roster, actor_id)

    ring = active_players(roster)
    if not ring:
        raise EmptyRingError()

    if all(p.has_acted for p in ring):
        return TurnStep(StepKind.ROUND_COMPLETE, roster, actor_id)

    actor = next((p for p in ring if p.id == actor_id), None)
    if actor is not None and not actor.has_acted:
        if should_skip(actor, roster):
            logger.debug(f"Auto-skipping seat {actor.id} ({actor.name})")
            return TurnStep(StepKind.SKIP, mark_acted(roster, actor.id), actor.id)
        return TurnStep(StepKind.READY, roster, actor.id)

    return TurnStep(StepKind.ADVANCE, roster, _next_unacted(ring, actor_id).id)


def settle_turn(roster: Roster, actor_id: Optional[int]) -> TurnResolution:
    """
    Run turn steps from actor_id until someone must act or the round ends.

    The seat under the pointer is considered first (used right after a deal).
    """
    skipped: list[int] = []
    while True:
        step = step_turn(roster, actor_id)
        roster, actor_id = step.roster, step.actor_id
        if step.kind == StepKind.SKIP:
            skipped.append(step.actor_id)
        elif step.kind == StepKind.READY:
            return TurnResolution(roster, actor_id, tuple(skipped))
        elif step.kind == StepKind.ROUND_COMPLETE:
            return TurnResolution(roster, None, tuple(skipped), round_complete=True)


def advance_turn(roster: Roster, current_player_id: Optional[int]) -> TurnResolution:
    """
    Find who acts after current_player_id, skipping everyone who must be skipped.

    Scanning starts just after the current seat. Repeated calls on a
    roster whose current seat has already acted never re-skip it.

    Returns:
        TurnResolution with the next actor, or round_complete=True.
    """
    if current_player_id is not None:
        find_player(roster, current_player_id)

    ring = active_players(roster)
    if not ring:
        raise EmptyRingError()
    if all(p.has_acted for p in ring):
        return TurnResolution(roster, None, round_complete=True)

    return settle_turn(roster, _next_unacted(ring, current_player_id).id)
