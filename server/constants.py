"""
Card values and tuning weights for Daketi.

This module is the single source of truth for card point values and for the
weights used by the bot policy and the rigged draw. Card values and room
limits come from config.py (environment-aware).

Daketi scoring (summed over a player's capture pile):
    - 2 through 10: 5 points
    - Jack, Queen, King: 10 points
    - Ace: 20 points
"""

from config import config


# =============================================================================
# Card Values
# =============================================================================

DEFAULT_CARD_VALUES: dict[str, int] = config.card_values.to_dict()

DECK_SIZE = 52


# =============================================================================
# Room Constants
# =============================================================================

MIN_PLAYERS = 2
ROOM_CODE_LENGTH = config.ROOM_CODE_LENGTH


# =============================================================================
# Bot Priorities
# =============================================================================

# Priority of a card that can only be discarded
BOT_DISCARD_PRIORITY = 1

# Base priority of any capturable card, plus one per steal target
BOT_CAPTURE_BASE = 5

BOT_TABLE_MATCH_BONUS = 2
BOT_SELF_MATCH_BONUS = 1


# =============================================================================
# Rigged Draw Weights
# =============================================================================

# Flagged drawer: bonuses on top of the card's own value
RIG_STEAL_BONUS = 100
RIG_STEAL_PER_CARD = 25
RIG_SELF_MATCH_BONUS = 50
RIG_TABLE_MATCH_BONUS = 20

# Everyone else while a flagged player is seated: penalties (lower cost wins)
RIG_PROTECTED_PILE_PENALTY = 1000
RIG_OWN_PILE_PENALTY = 100
RIG_TABLE_PENALTY = 50
