"""
Draw resolution, including the hidden rigged-draw toggle.

A normal draw takes the top card. When a seat is flagged as a cheater, draws
search the whole remaining deck instead:

    - The flagged seat gets the card that helps it most: its own value plus
      bonuses for enabling a steal (scaled by the cards stealable), a match
      on its own pile top and a table match.
    - Every other seat gets the card that helps it least: low value, never
      the protected cheater's pile rank, preferably not its own pile rank and
      not a table match.

Only one cheater is protected at a time (the lowest seat index). With two
flagged seats the outcome is not meant to be fair or stable.

Candidates are scored with capture.analyze_move, the same analysis used for
move validation. Ties go to the card nearest the top of the deck.
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from capture import analyze_move
from constants import (
    RIG_OWN_PILE_PENALTY,
    RIG_PROTECTED_PILE_PENALTY,
    RIG_SELF_MATCH_BONUS,
    RIG_STEAL_BONUS,
    RIG_STEAL_PER_CARD,
    RIG_TABLE_MATCH_BONUS,
    RIG_TABLE_PENALTY,
)

if TYPE_CHECKING:
    from game import Card, Game, Player

logger = logging.getLogger(__name__)


def protected_cheater(game: "Game", drawer: "Player") -> Optional["Player"]:
    """The flagged seat whose advantage other seats' draws protect, if any."""
    for player in game.players:
        if player.is_cheater and player.id != drawer.id:
            return player
    return None


def cheater_draw_score(game: "Game", player: "Player", card: "Card") -> int:
    """How much ``card`` would help a flagged drawer (higher is better)."""
    analysis = analyze_move(game.face_up_cards, game.players, player.id, card)
    score = card.value
    if analysis.steal_targets:
        score += RIG_STEAL_BONUS + RIG_STEAL_PER_CARD * analysis.stealable_count
    if analysis.self_match:
        score += RIG_SELF_MATCH_BONUS
    if analysis.table_match:
        score += RIG_TABLE_MATCH_BONUS
    return score


def victim_draw_cost(game: "Game", player: "Player", cheater: "Player", card: "Card") -> int:
    """How much ``card`` would help an unflagged drawer (lower is better for the cheater)."""
    cost = card.value

    cheater_top = cheater.pile_top()
    if cheater_top is not None and cheater_top.rank == card.rank:
        cost += RIG_PROTECTED_PILE_PENALTY

    own_top = player.pile_top()
    if own_top is not None and own_top.rank == card.rank:
        cost += RIG_OWN_PILE_PENALTY

    if any(c.rank == card.rank for c in game.face_up_cards):
        cost += RIG_TABLE_PENALTY
    return cost


def _best_from_top(cards: list["Card"], key: Callable[["Card"], int]) -> Optional["Card"]:
    best = None
    best_key = None
    for card in reversed(cards):
        k = key(card)
        if best_key is None or k > best_key:
            best, best_key = card, k
    return best


def pick_rigged_card(game: "Game", player: "Player") -> Optional["Card"]:
    """
    Choose which deck card ``player`` would draw, without removing it.

    Returns:
        The chosen card, or None when the draw is a plain top-of-deck draw
        (no flagged seat is involved) or the deck is empty.
    """
    cards = game.deck.cards
    if not cards:
        return None

    if player.is_cheater:
        return _best_from_top(cards, lambda c: cheater_draw_score(game, player, c))

    cheater = protected_cheater(game, player)
    if cheater is not None:
        return _best_from_top(cards, lambda c: -victim_draw_cost(game, player, cheater, c))

    return None


def draw_for_player(game: "Game", player: "Player") -> Optional["Card"]:
    """
    Remove and return the card ``player`` draws.

    Args:
        game: Game whose deck is drawn from.
        player: Seat drawing.

    Returns:
        The drawn card, or None if the deck is empty.
    """
    rigged = pick_rigged_card(game, player)
    if rigged is None:
        return game.deck.draw()

    if rigged is not game.deck.top():
        logger.debug(f"Rigged draw for seat {player.id}: {rigged} instead of {game.deck.top()}")
    return game.deck.take(rigged)
