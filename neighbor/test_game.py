"""
Test suite for the Screw Your Neighbor game model.

Covers:
- Card values (A=1, 2-10=face, J=11, Q=12, K=13)
- Deck building and Fisher-Yates shuffling
- Player seats (King handling, client view)
- The persisted session document

Run with: pytest test_game.py -v
"""

import random
from dataclasses import replace

import pytest

from constants import DECK_SIZE
from errors import UnknownSeatError
from game import (
    Card, Player, GameSession, GameState, RoundResult, Suit, Rank, RANK_VALUES,
    build_deck, find_player, get_card_value, new_deck, replace_player, shuffle_deck,
)


def card(rank: Rank, suit: Suit = Suit.HEARTS) -> Card:
    return Card(suit, rank)


# =============================================================================
# Card Value Tests
# =============================================================================

class TestCardValues:
    """Verify ranking values."""

    def test_ace_worth_1(self):
        assert RANK_VALUES[Rank.ACE] == 1

    def test_two_through_ten_face_value(self):
        numerals = [Rank.TWO, Rank.THREE, Rank.FOUR, Rank.FIVE, Rank.SIX,
                    Rank.SEVEN, Rank.EIGHT, Rank.NINE, Rank.TEN]
        for expected, rank in enumerate(numerals, start=2):
            assert RANK_VALUES[rank] == expected

    def test_court_cards(self):
        assert RANK_VALUES[Rank.JACK] == 11
        assert RANK_VALUES[Rank.QUEEN] == 12
        assert RANK_VALUES[Rank.KING] == 13

    def test_values_are_strictly_increasing(self):
        values = [RANK_VALUES[rank] for rank in Rank]
        assert values == sorted(values)
        assert len(set(values)) == 13

    def test_suit_never_affects_value(self):
        for rank in Rank:
            assert len({Card(suit, rank).value() for suit in Suit}) == 1

    def test_missing_card_is_zero(self):
        assert get_card_value(None) == 0
        assert get_card_value(card(Rank.QUEEN)) == 12

    def test_is_king(self):
        assert card(Rank.KING).is_king
        assert not card(Rank.QUEEN).is_king


# =============================================================================
# Deck Tests
# =============================================================================

class TestDeck:
    """Verify deck building and shuffling."""

    def test_deck_has_52_distinct_cards(self):
        deck = build_deck()
        assert len(deck) == DECK_SIZE == 52
        assert len(set(deck)) == DECK_SIZE

    def test_every_suit_rank_pair_once(self):
        deck = build_deck()
        for suit in Suit:
            for rank in Rank:
                assert deck.count(Card(suit, rank)) == 1

    def test_shuffle_is_a_permutation(self):
        deck = build_deck()
        shuffled = shuffle_deck(deck, random.Random(7))
        assert sorted(shuffled, key=repr) == sorted(deck, key=repr)

    def test_shuffle_does_not_mutate_input(self):
        deck = build_deck()
        original = list(deck)
        shuffle_deck(deck, random.Random(1))
        assert deck == original

    def test_shuffle_with_duplicates_keeps_multiset(self):
        cards = [card(Rank.ACE), card(Rank.ACE), card(Rank.KING)]
        shuffled = shuffle_deck(cards, random.Random(3))
        assert shuffled.count(card(Rank.ACE)) == 2
        assert shuffled.count(card(Rank.KING)) == 1

    def test_shuffle_is_deterministic_with_seed(self):
        deck = build_deck()
        assert shuffle_deck(deck, random.Random(42)) == shuffle_deck(deck, random.Random(42))

    def test_shuffle_empty_and_single(self):
        assert shuffle_deck([]) == []
        assert shuffle_deck([card(Rank.TWO)]) == [card(Rank.TWO)]

    def test_new_deck_is_full(self):
        deck = new_deck(random.Random(0))
        assert isinstance(deck, tuple)
        assert len(set(deck)) == DECK_SIZE


# =============================================================================
# Player Tests
# =============================================================================

class TestPlayer:
    """Verify seat value behavior."""

    def test_defaults(self):
        player = Player(id=0, name="Alice")
        assert player.chips == 3
        assert player.card is None
        assert not player.eliminated

    def test_king_is_revealed(self):
        player = Player(id=0, name="Alice").with_card(card(Rank.KING))
        assert player.has_king
        assert player.card_revealed

    def test_other_cards_are_hidden(self):
        player = Player(id=0, name="Alice").with_card(card(Rank.KING))
        player = player.with_card(card(Rank.FIVE))
        assert not player.has_king
        assert not player.card_revealed
        assert player.card_value == 5

    def test_players_are_immutable(self):
        player = Player(id=0, name="Alice")
        with pytest.raises(AttributeError):
            player.chips = 2

    def test_client_dict_hides_face_down_card(self):
        player = Player(id=1, name="Bob").with_card(card(Rank.SEVEN))
        data = player.to_client_dict()
        assert data["card"] is None
        assert data["hasCard"] is True

    def test_client_dict_reveal(self):
        player = Player(id=1, name="Bob").with_card(card(Rank.SEVEN))
        data = player.to_client_dict(reveal=True)
        assert data["card"] == {"suit": "hearts", "rank": "7"}

    def test_client_dict_always_shows_king(self):
        player = Player(id=1, name="Bob").with_card(card(Rank.KING))
        assert player.to_client_dict()["card"] == {"suit": "hearts", "rank": "K"}


class TestRosterHelpers:

    def setup_method(self):
        self.roster = (Player(id=0, name="A"), Player(id=1, name="B"))

    def test_find_player(self):
        assert find_player(self.roster, 1).name == "B"

    def test_unknown_seat_raises(self):
        with pytest.raises(UnknownSeatError):
            find_player(self.roster, 5)

    def test_replace_player_returns_new_roster(self):
        updated = replace_player(self.roster, Player(id=1, name="B", chips=1))
        assert updated[1].chips == 1
        assert self.roster[1].chips == 3

    def test_replace_unknown_player_raises(self):
        with pytest.raises(UnknownSeatError):
            replace_player(self.roster, Player(id=9, name="X"))


# =============================================================================
# Session Document Tests
# =============================================================================

class TestSessionDocument:
    """The persisted document must carry every field, nulls included."""

    def make_session(self) -> GameSession:
        players = (
            Player(id=0, name="Alice", is_dealer=True, is_host=True).with_card(card(Rank.KING)),
            Player(id=1, name="Bob", chips=1).with_card(card(Rank.THREE, Suit.CLUBS)),
        )
        return GameSession(
            game_id="AB12CD",
            num_players=4,
            game_state=GameState.PLAYING,
            players=players,
            current_player_id=1,
            deck=(card(Rank.TWO), card(Rank.NINE, Suit.SPADES)),
            round_result=RoundResult(3, ("Bob",), ("Bob",)),
            version=7,
            last_updated=1700000000000,
        )

    def test_document_keys(self):
        doc = self.make_session().to_dict()
        assert set(doc) == {
            "gameId", "numPlayers", "gameState", "hostId", "players",
            "currentPlayerId", "deck", "revealCards", "roundResult",
            "winner", "version", "lastUpdated",
        }
        assert set(doc["players"][0]) == {
            "id", "name", "chips", "card", "cardRevealed", "hasKing",
            "hasActed", "isDealer", "isHost", "eliminated",
        }

    def test_nulls_are_written(self):
        session = GameSession(game_id="AB12CD", num_players=2)
        doc = session.to_dict()
        assert doc["roundResult"] is None
        assert doc["winner"] is None
        assert doc["currentPlayerId"] is None
        assert doc["lastUpdated"] is None

    def test_document_round_trip(self):
        session = self.make_session()
        restored = GameSession.from_dict(session.to_dict())
        assert restored == session
        assert restored.to_dict() == session.to_dict()

    def test_game_state_values(self):
        assert GameState.GAME_OVER.value == "gameOver"
        assert GameSession.from_dict(
            {"gameId": "X", "numPlayers": 2, "gameState": "gameOver"}
        ).game_state == GameState.GAME_OVER

    def test_player_by_name_is_case_insensitive(self):
        session = self.make_session()
        assert session.player_by_name("  aLiCe ").id == 0
        assert session.player_by_name("carol") is None

    def test_current_player(self):
        assert self.make_session().current_player().name == "Bob"

    def test_client_view_shows_only_own_hidden_card(self):
        view = self.make_session().to_client_dict(my_seat_id=0)
        # Alice's King is face-up anyway; Bob's 3 is hidden from Alice
        assert view["players"][0]["card"]["rank"] == "K"
        assert view["players"][1]["card"] is None
        assert view["players"][1]["hasCard"] is True
        assert view["deck"] is None
        assert view["deckCount"] == 2

        bob_view = self.make_session().to_client_dict(my_seat_id=1)
        assert bob_view["players"][1]["card"]["rank"] == "3"

    def test_client_view_after_reveal(self):
        session = replace(self.make_session(), reveal_cards=True)
        view = session.to_client_dict(my_seat_id=None)
        assert view["players"][1]["card"]["rank"] == "3"
