"""
Card value and game constants for Screw Your Neighbor.

This module is the single source of truth for card ranking values.
Suits are cosmetic and never affect ranking.

Ranking:
    - Ace: 1 (always the lowest card)
    - 2-10: Face value
    - Jack: 11
    - Queen: 12
    - King: 13 (blocks exchange and is always shown face-up)
"""

from config import config


# =============================================================================
# Card Values - Single Source of Truth
# =============================================================================

CARD_VALUES: dict[str, int] = {
    'A': 1,
    '2': 2,
    '3': 3,
    '4': 4,
    '5': 5,
    '6': 6,
    '7': 7,
    '8': 8,
    '9': 9,
    '10': 10,
    'J': 11,
    'Q': 12,
    'K': 13,
}

DECK_SIZE = 52


# =============================================================================
# Game Constants
# =============================================================================

STARTING_CHIPS = config.STARTING_CHIPS
MIN_PLAYERS = config.MIN_PLAYERS
MAX_PLAYERS = config.MAX_PLAYERS
DEFAULT_NUM_PLAYERS = config.DEFAULT_NUM_PLAYERS
GAME_CODE_LENGTH = config.GAME_CODE_LENGTH

# Winner value when the last contenders are eliminated in the same round
TIE_GAME = "TIE GAME"
