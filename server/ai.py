"""Bot policy for Daketi seats without a live connection."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from capture import CaptureAnalysis
from constants import (
    BOT_CAPTURE_BASE,
    BOT_DISCARD_PRIORITY,
    BOT_SELF_MATCH_BONUS,
    BOT_TABLE_MATCH_BONUS,
)
from game import ActionResult, ActionType, Game, Player, TurnPhase


# Debug logging configuration
# Set AI_DEBUG=1 environment variable to enable detailed AI decision logging
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

ai_logger = logging.getLogger("daketi.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)


def ai_log(message: str):
    """Log AI decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


@dataclass
class BotMove:
    """A move chosen for a bot seat."""

    action: ActionType
    hand_index: Optional[int] = None
    priority: int = 0


class DaketiAI:
    """
    Greedy one-ply bot.

    Draws when it must; otherwise captures with the hand card that captures
    the most (steals first), or throws away its first card.
    """

    @staticmethod
    def capture_priority(analysis: CaptureAnalysis) -> int:
        """Priority of a hand card given its capture analysis."""
        if not analysis.can_capture:
            return BOT_DISCARD_PRIORITY
        priority = BOT_CAPTURE_BASE + len(analysis.steal_targets)
        if analysis.table_match:
            priority += BOT_TABLE_MATCH_BONUS
        if analysis.self_match:
            priority += BOT_SELF_MATCH_BONUS
        return priority

    @staticmethod
    def choose_move(game: Game, player: Player) -> Optional[BotMove]:
        """
        Pick the move for ``player`` on the current table.

        Returns:
            The chosen move, or None when the seat has nothing to play.
        """
        if game.turn_phase == TurnPhase.DRAW:
            return BotMove(ActionType.DRAW)

        if not player.hand:
            return None

        best_index, best_priority = 0, 0
        for i, card in enumerate(player.hand):
            priority = DaketiAI.capture_priority(game.analyze(player.id, card))
            if priority > best_priority:
                best_index, best_priority = i, priority

        if best_priority > BOT_DISCARD_PRIORITY:
            ai_log(f"{player.name} captures with {player.hand[best_index]} (priority {best_priority})")
            return BotMove(ActionType.CAPTURE, best_index, best_priority)

        ai_log(f"{player.name} has no capture, discarding {player.hand[0]}")
        return BotMove(ActionType.DISCARD, 0, best_priority)


def play_bot_turn(game: Game) -> Optional[ActionResult]:
    """
    Choose and apply one move for the current seat.

    Returns:
        The applied ActionResult, or None if there was nothing to do.
    """
    player = game.current_player()
    if player is None or game.is_game_over():
        return None

    move = DaketiAI.choose_move(game, player)
    if move is None:
        return None
    return game.apply_action(player.id, move.action, move.hand_index)
