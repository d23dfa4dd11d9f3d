"""
Round engine for Screw Your Neighbor.

A round moves through:

    dealt -> each active seat keeps, exchanges, or is auto-skipped
          -> revealed -> resolved -> next round | game over

Every function here is pure: it takes a roster (and deck) and returns new
values. Persisting each intermediate state is the caller's job.
"""

import logging
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from constants import TIE_GAME
from errors import AlreadyActedError, EmptyRingError, MissingDealerError
from game import Card, Player, Roster, RoundResult, find_player, new_deck, replace_player
from turns import active_players, left_neighbor, next_active_after

logger = logging.getLogger(__name__)


class ExchangeOutcome(str, Enum):
    """How an exchange action resolved."""

    DECK = "deck"          # Dealer swapped with the top of the deck
    NEIGHBOR = "neighbor"  # Cards swapped with the left neighbor
    BLOCKED = "blocked"    # Neighbor holds a King; treated as a keep


@dataclass(frozen=True)
class DealResult:
    roster: Roster
    deck: tuple[Card, ...]
    first_actor_id: int


@dataclass(frozen=True)
class ExchangeResult:
    roster: Roster
    deck: tuple[Card, ...]
    outcome: ExchangeOutcome
    neighbor_id: Optional[int] = None


@dataclass(frozen=True)
class RoundOutcome:
    roster: Roster
    result: RoundResult
    winner: Optional[str] = None


@dataclass(frozen=True)
class NextRound:
    roster: Roster
    dealer_id: int


def _dealer(players: list[Player]) -> Player:
    for player in players:
        if player.is_dealer:
            return player
    raise MissingDealerError()


def deal_new_round(
    roster: Roster,
    deck: tuple[Card, ...],
    rng: Optional[random.Random] = None,
) -> DealResult:
    """
    Deal one card to every active seat.

    A fresh shuffled deck replaces the old one when fewer cards remain
    than there are active seats. Kings are revealed as soon as they are
    dealt. Eliminated seats get no card and count as having acted.

    The first actor is the seat to the dealer's left. It may still need
    to be auto-skipped; run turns.settle_turn() (or the service's
    persisted cascade) before handing control to that seat.

    Args:
        roster: Current roster (dealer already chosen).
        deck: Remaining draw pile; the last card is the top.
        rng: Random source for reshuffles.

    Returns:
        DealResult with the dealt roster, remaining deck, and first actor.
    """
    ring = active_players(roster)
    if not ring:
        raise EmptyRingError()
    dealer = _dealer(ring)

    cards = list(deck)
    if len(cards) < len(ring):
        logger.debug(f"Deck has {len(cards)} cards for {len(ring)} players, reshuffling")
        cards = list(new_deck(rng))

    dealt: list[Player] = []
    for player in roster:
        if player.eliminated:
            dealt.append(replace(
                player,
                card=None,
                card_revealed=False,
                has_king=False,
                has_acted=True,
            ))
        else:
            dealt.append(replace(player.with_card(cards.pop()), has_acted=False))

    new_roster = tuple(dealt)
    first_actor = left_neighbor(new_roster, dealer.id)
    return DealResult(new_roster, tuple(cards), first_actor.id)


def _acting_player(roster: Roster, seat_id: int) -> Player:
    player = find_player(roster, seat_id)
    if player.eliminated or player.has_acted:
        raise AlreadyActedError(f"{player.name} has already acted this round")
    return player


def keep_card(roster: Roster, seat_id: int) -> Roster:
    """
    Keep the current card.

    Raises:
        AlreadyActedError: The seat has already acted or is eliminated.
    """
    player = _acting_player(roster, seat_id)
    return replace_player(roster, replace(player, has_acted=True))


def _draw_from_deck(roster: Roster, deck: tuple[Card, ...], rng: Optional[random.Random]) -> tuple[Card, tuple[Card, ...]]:
    """Draw the top card, rebuilding the deck without the held cards if it ran out."""
    cards = list(deck)
    if not cards:
        held = {p.card for p in roster if p.card is not None}
        cards = [c for c in new_deck(rng) if c not in held]
        logger.debug(f"Deck empty on dealer exchange, rebuilt with {len(cards)} cards")
    card = cards.pop()
    return card, tuple(cards)


def exchange_card(
    roster: Roster,
    seat_id: int,
    deck: tuple[Card, ...],
    rng: Optional[random.Random] = None,
) -> ExchangeResult:
    """
    Exchange the current card.

    The dealer swaps with the top of the deck; the old card is dropped,
    never returned to the deck. Anyone else swaps with their left
    neighbor, unless the neighbor holds a King, in which case nothing
    changes. Either way the seat has now acted.

    Args:
        roster: Current roster.
        seat_id: Seat taking the action.
        deck: Draw pile; the last card is the top.
        rng: Random source if the deck must be rebuilt.

    Returns:
        ExchangeResult with the new roster, deck, and what happened.

    Raises:
        AlreadyActedError: The seat has already acted or is eliminated.
    """
    player = _acting_player(roster, seat_id)

    if player.is_dealer:
        card, deck = _draw_from_deck(roster, deck, rng)
        updated = replace(player.with_card(card), has_acted=True)
        return ExchangeResult(replace_player(roster, updated), deck, ExchangeOutcome.DECK)

    neighbor = left_neighbor(roster, seat_id)
    if neighbor.id == player.id or neighbor.has_king:
        updated = replace(player, has_acted=True)
        return ExchangeResult(
            replace_player(roster, updated), deck, ExchangeOutcome.BLOCKED, neighbor.id
        )

    new_roster = replace_player(roster, replace(player.with_card(neighbor.card), has_acted=True))
    new_roster = replace_player(new_roster, neighbor.with_card(player.card))
    return ExchangeResult(new_roster, deck, ExchangeOutcome.NEIGHBOR, neighbor.id)


def check_for_winner(roster: Roster) -> Optional[str]:
    """
    Check if the game has been decided.

    Returns:
        The winner's name if exactly one seat still has chips, TIE_GAME if
        nobody does, or None while the game continues.
    """
    remaining = [p for p in roster if not p.eliminated and p.chips > 0]
    if len(remaining) == 1:
        return remaining[0].name
    if not remaining:
        return TIE_GAME
    return None


def end_round(roster: Roster) -> RoundOutcome:
    """
    Resolve the round: every seat holding the lowest card loses a chip.

    Ties all lose. A loser who had one chip is eliminated.

    Raises:
        EmptyRingError: No active seat holds a card.
    """
    contenders = [p for p in active_players(roster) if p.card is not None]
    if not contenders:
        raise EmptyRingError()

    lowest_value = min(p.card_value for p in contenders)
    losers = [p for p in contenders if p.card_value == lowest_value]
    loser_ids = {p.id for p in losers}

    updated: list[Player] = []
    for player in roster:
        if player.id in loser_ids:
            chips = max(0, player.chips - 1)
            updated.append(replace(player, chips=chips, eliminated=chips == 0))
        else:
            updated.append(player)
    new_roster = tuple(updated)

    result = RoundResult(
        lowest_value=lowest_value,
        losers=tuple(p.name for p in losers),
        eliminated_players=tuple(p.name for p in losers if p.chips == 1),
    )
    winner = check_for_winner(new_roster)
    logger.debug(
        f"Round resolved: lowest={lowest_value} losers={list(result.losers)} "
        f"eliminated={list(result.eliminated_players)} winner={winner}"
    )
    return RoundOutcome(new_roster, result, winner)


def next_round(roster: Roster) -> NextRound:
    """
    Pass the deal to the next active seat and clear the table.

    Rotation is relative to the current dealer's seat even if that seat
    was just eliminated. Cards are collected and turn flags reset; call
    deal_new_round() next.

    Raises:
        MissingDealerError: No seat is marked as dealer.
    """
    dealer = _dealer(list(roster))
    new_dealer = next_active_after(roster, dealer.id)

    new_roster = tuple(
        replace(
            player,
            card=None,
            card_revealed=False,
            has_king=False,
            has_acted=player.eliminated,
            is_dealer=player.id == new_dealer.id,
        )
        for player in roster
    )
    logger.debug(f"Dealer passes from seat {dealer.id} to seat {new_dealer.id}")
    return NextRound(new_roster, new_dealer.id)
