"""
Capture analysis for Daketi.

Given a candidate card and a snapshot of the table and every capture pile,
work out everything that card could capture. The same function backs move
validation, the bot policy and the rigged draw, so it must stay pure: no
mutation of its inputs and no randomness.

Capture sources, checked in this order:
    1. Steal: each opponent whose pile top shares the card's rank gives up
       the contiguous run of that rank from the top of their pile.
    2. Table: every face-up card of that rank.
    3. Self: the player's own pile top shares the rank. Advisory only; the
       player's own pile is never moved.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from game import Card, Player, Rank


@dataclass
class StealTarget:
    """
    The run of cards a capture would take from one opponent.

    Attributes:
        opponent_id: Seat index of the opponent being robbed.
        cards: The run, listed from the top of the pile downwards.
    """

    opponent_id: int
    cards: list["Card"]

    def to_dict(self) -> dict:
        return {
            "opponent_id": self.opponent_id,
            "cards": [c.to_dict() for c in self.cards],
        }


@dataclass
class CaptureAnalysis:
    """Everything a candidate card could capture."""

    can_capture: bool = False
    steal_targets: list[StealTarget] = field(default_factory=list)
    table_match: list["Card"] = field(default_factory=list)
    self_match: bool = False

    @property
    def stealable_count(self) -> int:
        """Total cards across all steal targets."""
        return sum(len(t.cards) for t in self.steal_targets)

    def to_dict(self) -> dict:
        return {
            "can_capture": self.can_capture,
            "steal_targets": [t.to_dict() for t in self.steal_targets],
            "table_match": [c.to_dict() for c in self.table_match],
            "self_match": self.self_match,
        }


def steal_run(pile: list["Card"], rank: "Rank") -> list["Card"]:
    """
    Collect the maximal run of ``rank`` cards from the top of a pile.

    The last element of the pile is its top. Scanning stops at the first
    card of a different rank.

    Args:
        pile: A capture pile, oldest card first.
        rank: Rank being matched.

    Returns:
        The run, top card first. Empty if the top card does not match.
    """
    run = []
    for card in reversed(pile):
        if card.rank != rank:
            break
        run.append(card)
    return run


def _find_player(players: Iterable["Player"], player_id: int) -> Optional["Player"]:
    for player in players:
        if player.id == player_id:
            return player
    return None


def analyze_move(
    face_up_cards: list["Card"],
    players: list["Player"],
    player_id: int,
    card: "Card",
) -> CaptureAnalysis:
    """
    Determine every legal capture for ``card`` played by ``player_id``.

    The card does not have to be in the player's hand yet; the rigged draw
    evaluates deck cards through this same function.

    Args:
        face_up_cards: Cards currently on the table.
        players: All players (their piles are inspected).
        player_id: Seat index of the acting player.
        card: Candidate card.

    Returns:
        A fresh CaptureAnalysis. The inputs are left untouched.
    """
    result = CaptureAnalysis()

    for opponent in players:
        if opponent.id == player_id or not opponent.pile:
            continue
        run = steal_run(opponent.pile, card.rank)
        if run:
            result.steal_targets.append(StealTarget(opponent_id=opponent.id, cards=run))

    result.table_match = [c for c in face_up_cards if c.rank == card.rank]

    player = _find_player(players, player_id)
    if player is not None and player.pile and player.pile[-1].rank == card.rank:
        result.self_match = True

    result.can_capture = bool(result.steal_targets or result.table_match or result.self_match)
    return result
