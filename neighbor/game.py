"""
Game model for Screw Your Neighbor.

This module holds the value types shared by every other part of the engine:
cards and the deck, player seats, round results, and the session document
that is stored and replicated between clients.

Screw Your Neighbor Rules Summary:
    - Every active player is dealt one card; the lowest card loses a chip
    - On your turn: keep your card, or exchange it with your left neighbor
    - The dealer acts last and exchanges with the deck instead
    - A King is shown face-up and can never be taken in an exchange
    - A player with no chips left is eliminated; last player standing wins

All types are immutable. Every state transition builds a new roster
(a tuple of Player values) with dataclasses.replace(), so a roster
fetched from the store can always replace the local one wholesale.
"""

import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from constants import CARD_VALUES, STARTING_CHIPS
from errors import UnknownSeatError


class Suit(Enum):
    """Card suits. Purely cosmetic, never used for ranking."""

    SPADES = "spades"
    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"


class Rank(Enum):
    """Card ranks with their display values."""

    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"


# Map Rank enum to ranking values (derived from constants.py as single source of truth)
RANK_VALUES: dict[Rank, int] = {rank: CARD_VALUES[rank.value] for rank in Rank}


@dataclass(frozen=True)
class Card:
    """
    A playing card.

    Attributes:
        suit: The card's suit (cosmetic).
        rank: The card's rank (A, 2-10, J, Q, K).
    """

    suit: Suit
    rank: Rank

    @property
    def is_king(self) -> bool:
        return self.rank == Rank.KING

    def value(self) -> int:
        """Get ranking value (A=1 ... K=13)."""
        return RANK_VALUES[self.rank]

    def to_dict(self) -> dict:
        return {"suit": self.suit.value, "rank": self.rank.value}

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        return cls(suit=Suit(d["suit"]), rank=Rank(d["rank"]))


def get_card_value(card: Optional[Card]) -> int:
    """
    Get the ranking value of a card.

    A missing card has value 0, matching a seat that holds nothing.
    """
    if card is None:
        return 0
    return card.value()


# -------------------------------------------------------------------------
# Deck Engine
# -------------------------------------------------------------------------

def build_deck() -> list[Card]:
    """Build one of every (suit, rank) pair: 52 cards, unshuffled."""
    return [Card(suit, rank) for suit in Suit for rank in Rank]


def shuffle_deck(deck: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Return a shuffled copy of the deck using Fisher-Yates.

    The caller's list is never mutated.

    Args:
        deck: Cards to shuffle.
        rng: Random source (module-level random if None).

    Returns:
        A new list holding a uniformly random permutation of deck.
    """
    rng = rng or random
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def new_deck(rng: Optional[random.Random] = None) -> tuple[Card, ...]:
    """Build and shuffle a fresh 52-card deck."""
    return tuple(shuffle_deck(build_deck(), rng))


# -------------------------------------------------------------------------
# Player seats
# -------------------------------------------------------------------------

@dataclass(frozen=True)
class Player:
    """
    A seat at the table.

    Attributes:
        id: Stable seat index, immutable for the life of the game.
        name: Display name, unique per game (case-insensitive).
        chips: Chips left (0-3). Zero chips means eliminated.
        card: The card held this round, or None.
        card_revealed: Whether the card is visible to everyone.
        has_king: Whether the held card is a King.
        has_acted: Whether the seat has taken (or skipped) its turn.
        is_dealer: Whether this seat deals (and exchanges with the deck).
        is_host: Whether this seat created the game.
        eliminated: Whether the seat is out of the game.
    """

    id: int
    name: str
    chips: int = STARTING_CHIPS
    card: Optional[Card] = None
    card_revealed: bool = False
    has_king: bool = False
    has_acted: bool = False
    is_dealer: bool = False
    is_host: bool = False
    eliminated: bool = False

    @property
    def card_value(self) -> int:
        return get_card_value(self.card)

    def with_card(self, card: Optional[Card]) -> "Player":
        """Hold a new card. Kings are always revealed."""
        has_king = card is not None and card.is_king
        return replace(self, card=card, has_king=has_king, card_revealed=has_king)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "chips": self.chips,
            "card": self.card.to_dict() if self.card else None,
            "cardRevealed": self.card_revealed,
            "hasKing": self.has_king,
            "hasActed": self.has_acted,
            "isDealer": self.is_dealer,
            "isHost": self.is_host,
            "eliminated": self.eliminated,
        }

    def to_client_dict(self, reveal: bool = False) -> dict:
        """
        Convert to a dict for display, hiding a face-down card.

        Args:
            reveal: Show the card even if it is face-down (own seat,
                    or the round has been revealed).
        """
        data = self.to_dict()
        if self.card and not (reveal or self.card_revealed):
            data["card"] = None
            data["hasCard"] = True
        else:
            data["hasCard"] = self.card is not None
        return data

    @classmethod
    def from_dict(cls, d: dict) -> "Player":
        card = d.get("card")
        return cls(
            id=int(d["id"]),
            name=d["name"],
            chips=d.get("chips", STARTING_CHIPS),
            card=Card.from_dict(card) if card else None,
            card_revealed=d.get("cardRevealed", False),
            has_king=d.get("hasKing", False),
            has_acted=d.get("hasActed", False),
            is_dealer=d.get("isDealer", False),
            is_host=d.get("isHost", False),
            eliminated=d.get("eliminated", False),
        )


Roster = tuple[Player, ...]


def find_player(roster: Roster, seat_id: int) -> Player:
    """
    Find a seat by id.

    Raises:
        UnknownSeatError: No such seat in the roster.
    """
    for player in roster:
        if player.id == seat_id:
            return player
    raise UnknownSeatError(seat_id)


def replace_player(roster: Roster, player: Player) -> Roster:
    """Return a new roster with the seat of the same id swapped for player."""
    find_player(roster, player.id)
    return tuple(player if p.id == player.id else p for p in roster)


# -------------------------------------------------------------------------
# Round results and the session document
# -------------------------------------------------------------------------

@dataclass(frozen=True)
class RoundResult:
    """
    Outcome of a resolved round.

    Attributes:
        lowest_value: Lowest card value among active players.
        losers: Names of every player holding that value.
        eliminated_players: Losers who dropped from 1 chip to 0.
    """

    lowest_value: int
    losers: tuple[str, ...] = ()
    eliminated_players: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "lowestValue": self.lowest_value,
            "losers": list(self.losers),
            "eliminatedPlayers": list(self.eliminated_players),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RoundResult":
        return cls(
            lowest_value=d["lowestValue"],
            losers=tuple(d.get("losers") or ()),
            eliminated_players=tuple(d.get("eliminatedPlayers") or ()),
        )


class GameState(str, Enum):
    """
    Lifecycle of a game session.

    Flow: SETUP -> WAITING -> PLAYING (round after round) -> GAME_OVER
    """

    SETUP = "setup"
    WAITING = "waiting"
    PLAYING = "playing"
    GAME_OVER = "gameOver"


@dataclass(frozen=True)
class GameSession:
    """
    The authoritative state of one game, as held by the store.

    Attributes:
        game_id: 6-character join code.
        num_players: Target seat count chosen by the host.
        game_state: Lifecycle state.
        players: The roster, in join (= seat id) order.
        current_player_id: Seat whose turn it is.
        deck: Draw pile; the last card is the top.
        reveal_cards: Whether the round has ended and all cards are shown.
        round_result: Result of the last resolved round, if shown.
        winner: Winning name, the tie sentinel, or None.
        host_id: Seat id of the host.
        version: Write counter, incremented on every save.
        last_updated: Epoch milliseconds of the last save.
    """

    game_id: str
    num_players: int
    game_state: GameState = GameState.WAITING
    players: Roster = ()
    current_player_id: Optional[int] = None
    deck: tuple[Card, ...] = ()
    reveal_cards: bool = False
    round_result: Optional[RoundResult] = None
    winner: Optional[str] = None
    host_id: int = 0
    version: int = 0
    last_updated: Optional[int] = field(default=None, compare=False)

    def get_player(self, seat_id: int) -> Player:
        return find_player(self.players, seat_id)

    def player_by_name(self, name: str) -> Optional[Player]:
        """Find a seat by name (case-insensitive)."""
        lowered = name.strip().lower()
        for player in self.players:
            if player.name.lower() == lowered:
                return player
        return None

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it currently is."""
        if self.current_player_id is None:
            return None
        for player in self.players:
            if player.id == self.current_player_id:
                return player
        return None

    def to_dict(self) -> dict:
        """
        Convert to the persisted document.

        Every key is always written so that null and absent never differ.
        """
        return {
            "gameId": self.game_id,
            "numPlayers": self.num_players,
            "gameState": self.game_state.value,
            "hostId": self.host_id,
            "players": [p.to_dict() for p in self.players],
            "currentPlayerId": self.current_player_id,
            "deck": [c.to_dict() for c in self.deck],
            "revealCards": self.reveal_cards,
            "roundResult": self.round_result.to_dict() if self.round_result else None,
            "winner": self.winner,
            "version": self.version,
            "lastUpdated": self.last_updated,
        }

    def to_client_dict(self, my_seat_id: Optional[int]) -> dict:
        """
        Convert to a dict for display to one client.

        Hidden cards are blanked out except the viewer's own; once the
        round is revealed every card is shown. The deck is reduced to a
        count.
        """
        data = self.to_dict()
        data["players"] = [
            p.to_client_dict(reveal=self.reveal_cards or p.id == my_seat_id)
            for p in self.players
        ]
        data["deck"] = None
        data["deckCount"] = len(self.deck)
        data["mySeatId"] = my_seat_id
        return data

    @classmethod
    def from_dict(cls, d: dict) -> "GameSession":
        round_result = d.get("roundResult")
        current = d.get("currentPlayerId")
        return cls(
            game_id=d["gameId"],
            num_players=int(d["numPlayers"]),
            game_state=GameState(d.get("gameState", GameState.WAITING.value)),
            players=tuple(Player.from_dict(p) for p in d.get("players") or ()),
            current_player_id=int(current) if current is not None else None,
            deck=tuple(Card.from_dict(c) for c in d.get("deck") or ()),
            reveal_cards=d.get("revealCards", False),
            round_result=RoundResult.from_dict(round_result) if round_result else None,
            winner=d.get("winner"),
            host_id=d.get("hostId", 0),
            version=d.get("version", 0),
            last_updated=d.get("lastUpdated"),
        )
