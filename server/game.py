"""
Game logic for Daketi, a multiplayer card-capture game.

This module implements the card/deck model, player seats and the turn state
machine. Capture decomposition lives in capture.py and the rigged draw in
rigged_draw.py; both are called from here.

Daketi Rules Summary:
    - Every player is dealt a hand; a few cards are dealt face-up to the table
    - On your turn: draw one card from the deck, then play one card from hand
    - Playing is either a discard (card joins the face-up pool) or a capture
    - A capture takes every face-up card of the played rank, plus the top run
      of that rank from any opponent's capture pile (a steal)
    - Capturing while the deck still has cards earns another draw
    - Once the deck is empty there is no draw phase; players keep playing
      their hands until every hand is empty
    - Score is the sum of the card values in your capture pile

Turn Flow:
    DRAW -> PLAY -> discard                      -> next seat
                 -> capture (deck not empty)     -> same seat, DRAW
                 -> capture (deck empty)         -> next seat
"""

import logging
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from capture import CaptureAnalysis, analyze_move
import config as config_module
from constants import DECK_SIZE, DEFAULT_CARD_VALUES, MIN_PLAYERS
from errors import EmptyDeckDraw, InvalidAction, InvalidConfig
from rigged_draw import draw_for_player

logger = logging.getLogger(__name__)


class Suit(Enum):
    """Card suits for a standard deck, in construction order."""

    SPADES = "spades"
    HEARTS = "hearts"
    CLUBS = "clubs"
    DIAMONDS = "diamonds"

    @property
    def symbol(self) -> str:
        return SUIT_SYMBOLS[self]

    @property
    def color(self) -> str:
        return "red" if self in (Suit.HEARTS, Suit.DIAMONDS) else "black"


SUIT_SYMBOLS: dict[Suit, str] = {
    Suit.SPADES: "♠",
    Suit.HEARTS: "♥",
    Suit.CLUBS: "♣",
    Suit.DIAMONDS: "♦",
}


class Rank(Enum):
    """Card ranks with their display values."""

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
    ACE = "A"


# Map Rank enum to point values (derived from constants.py as single source of truth)
RANK_VALUES: dict[Rank, int] = {rank: DEFAULT_CARD_VALUES[rank.value] for rank in Rank}


def new_card_id() -> str:
    """Opaque token used by clients to correlate a card across animations."""
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class Card:
    """
    An immutable playing card.

    Attributes:
        rank: The card's rank (2-10, J, Q, K, A).
        suit: The card's suit.
        id: Unique token assigned at creation, stable for the card's lifetime.
    """

    rank: Rank
    suit: Suit
    id: str = field(default_factory=new_card_id)

    @property
    def value(self) -> int:
        """Points the card is worth in a capture pile."""
        return RANK_VALUES[self.rank]

    @property
    def color(self) -> str:
        return self.suit.color

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "rank": self.rank.value,
            "suit": self.suit.value,
            "symbol": self.suit.symbol,
            "value": self.value,
            "color": self.color,
        }

    def __str__(self) -> str:
        return f"{self.rank.value}{self.suit.symbol}"


class Deck:
    """
    A single 52-card deck, drained from the end of its list.

    The shuffle is seeded so that a stored seed reproduces a game exactly.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        """
        Build and shuffle a fresh deck.

        Args:
            seed: Optional seed for a deterministic shuffle. If None, a random
                  seed is generated and stored.
        """
        self.seed: int = seed if seed is not None else random.randint(0, 2**31 - 1)
        self.cards: list[Card] = [Card(rank, suit) for suit in Suit for rank in Rank]
        self.shuffle()

    @classmethod
    def stacked(cls, cards: list[Card]) -> "Deck":
        """Build an unshuffled deck from explicit cards; the last card is drawn first."""
        deck = cls.__new__(cls)
        deck.seed = None
        deck.cards = list(cards)
        return deck

    def shuffle(self) -> None:
        """Fisher-Yates shuffle driven by the deck's seed."""
        random.Random(self.seed).shuffle(self.cards)

    def draw(self) -> Optional[Card]:
        """
        Remove and return the top card.

        Returns:
            The drawn Card, or None if the deck is empty.
        """
        if self.cards:
            return self.cards.pop()
        return None

    def take(self, card: Card) -> Card:
        """Remove a specific card from anywhere in the deck."""
        for i, candidate in enumerate(self.cards):
            if candidate.id == card.id:
                return self.cards.pop(i)
        raise ValueError(f"Card {card} is not in the deck")

    def top(self) -> Optional[Card]:
        return self.cards[-1] if self.cards else None

    def cards_remaining(self) -> int:
        """Return the number of cards left in the deck."""
        return len(self.cards)

    def is_empty(self) -> bool:
        return not self.cards

    def __len__(self) -> int:
        return len(self.cards)


@dataclass
class Player:
    """
    A seat at the Daketi table.

    A seat is controlled either by a live connection or, when it has none, by
    the bot policy. The connection id is volatile; the persistent id
    identifies the human across reconnects and is never cleared once set.

    Attributes:
        id: Seat index, fixed for the game's lifetime.
        name: Display name.
        is_bot: True exactly when no connection is bound.
        hand: Cards held; only ever shown to this seat.
        pile: Captured cards, oldest first (last element is the top).
        connection_id: Transient handle of the bound connection, if any.
        persistent_id: Stable identity of the human who owns the seat.
        is_cheater: Rigged-draw flag.
    """

    id: int
    name: str
    is_bot: bool = True
    hand: list[Card] = field(default_factory=list)
    pile: list[Card] = field(default_factory=list)
    connection_id: Optional[str] = None
    persistent_id: Optional[str] = None
    is_cheater: bool = False

    @property
    def is_connected(self) -> bool:
        return self.connection_id is not None

    def pile_top(self) -> Optional[Card]:
        return self.pile[-1] if self.pile else None

    def score(self) -> int:
        """Sum of card values in the capture pile."""
        return sum(card.value for card in self.pile)

    def bind_connection(
        self,
        connection_id: str,
        persistent_id: Optional[str],
        name: Optional[str] = None,
    ) -> None:
        """
        Put a live connection in control of this seat.

        The persistent id is only recorded the first time; a reconnect keeps
        the original identity.
        """
        self.connection_id = connection_id
        if self.persistent_id is None:
            self.persistent_id = persistent_id
        if name:
            self.name = name
        self.is_bot = False

    def drop_connection(self) -> None:
        """Hand the seat to the bot, keeping the identity for a later rejoin."""
        self.connection_id = None
        self.is_bot = True

    def to_public_dict(self, reveal_hand: bool) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_bot": self.is_bot,
            "pile": [c.to_dict() for c in self.pile],
            "hand_count": len(self.hand),
            "hand": [c.to_dict() for c in self.hand] if reveal_hand else None,
            "score": self.score(),
        }

    def to_final_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_bot": self.is_bot,
            "pile": [c.to_dict() for c in self.pile],
            "score": self.score(),
        }


class TurnPhase(str, Enum):
    """
    Phase of the current seat's turn.

    DRAW: the seat must draw before playing.
    PLAY: the seat must discard or capture.
    Game over is derived (Game.is_game_over), never stored.
    """

    DRAW = "draw"
    PLAY = "play"


class ActionType(str, Enum):
    DRAW = "draw"
    DISCARD = "discard"
    CAPTURE = "capture"


@dataclass
class GameConfig:
    """Table settings chosen by the room's host."""

    num_players: int = field(default_factory=lambda: config_module.config.game_defaults.num_players)
    hand_size: int = field(default_factory=lambda: config_module.config.game_defaults.hand_size)
    face_up_size: int = field(default_factory=lambda: config_module.config.game_defaults.face_up_size)

    def validate(self) -> None:
        """
        Raise InvalidConfig unless the whole deal fits in one deck.

        The deck is the only upper bound on the player count. A lone player
        has nobody to steal from, so at least two seats are required.
        """
        if self.num_players < MIN_PLAYERS:
            raise InvalidConfig(f"At least {MIN_PLAYERS} players are needed")
        if self.hand_size < 1:
            raise InvalidConfig("Hand size must be at least 1")
        if self.face_up_size < 0:
            raise InvalidConfig("Face-up size cannot be negative")
        if self.num_players * self.hand_size + self.face_up_size > DECK_SIZE:
            raise InvalidConfig(f"Deal needs more than {DECK_SIZE} cards")

    @classmethod
    def from_client_data(cls, data: Optional[dict]) -> "GameConfig":
        """Build a validated GameConfig from client WebSocket message data."""
        data = data or {}
        defaults = cls()
        try:
            game_config = cls(
                num_players=_as_int(data.get("num_players"), defaults.num_players),
                hand_size=_as_int(data.get("hand_size"), defaults.hand_size),
                face_up_size=_as_int(data.get("face_up_size"), defaults.face_up_size),
            )
        except (TypeError, ValueError):
            raise InvalidConfig("Game settings must be whole numbers")
        game_config.validate()
        return game_config

    def to_dict(self) -> dict:
        return {
            "num_players": self.num_players,
            "hand_size": self.hand_size,
            "face_up_size": self.face_up_size,
        }


def _as_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(value)
    return int(value)


@dataclass
class ActionResult:
    """
    Outcome of a successful action, used to build the animation event.

    Attributes:
        action: Which action was applied.
        seat_id: Seat that acted.
        card: The card drawn, discarded or played.
        analysis: Capture decomposition (captures only).
        extra_turn: Whether the capture earned another draw (captures only).
    """

    action: ActionType
    seat_id: int
    card: Card
    analysis: Optional[CaptureAnalysis] = None
    extra_turn: Optional[bool] = None

    def animation_details(self, reveal_card: bool = True) -> dict:
        """
        Details for the client animation.

        A drawn card is private to the drawer; other seats only get its id.
        """
        details: dict[str, Any] = {
            "card": self.card.to_dict() if reveal_card else {"id": self.card.id},
        }
        if self.action == ActionType.CAPTURE:
            details["analysis"] = self.analysis.to_dict() if self.analysis else None
            details["extra_turn"] = bool(self.extra_turn)
        return details


@dataclass
class Game:
    """
    Main game state and turn controller for one Daketi table.

    Attributes:
        config: Table settings.
        deck: The draw pile (never exposed to clients, only its size).
        face_up_cards: Shared table cards, in the order they arrived.
        players: Seats, indexed by Player.id.
        current_player_idx: Seat whose turn it is.
        turn_phase: DRAW or PLAY for the current seat.
        seed: Shuffle seed of the current deck (None for a stacked deck).
    """

    config: GameConfig = field(default_factory=GameConfig)
    deck: Deck = field(default_factory=lambda: Deck.stacked([]))
    face_up_cards: list[Card] = field(default_factory=list)
    players: list[Player] = field(default_factory=list)
    current_player_idx: int = 0
    turn_phase: TurnPhase = TurnPhase.DRAW
    seed: Optional[int] = None

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def deal(self, deck: Optional[Deck] = None) -> None:
        """
        Build the deck, seat everyone as bots and deal.

        Hands are dealt one card per seat per round, then the face-up cards,
        all from the top of the deck.

        Args:
            deck: Deck to deal from. If None, a fresh shuffled deck is built
                  from ``self.seed``.
        """
        self.deck = deck if deck is not None else Deck(seed=self.seed)
        self.seed = self.deck.seed
        self.players = [Player(id=i, name=f"Bot {i}") for i in range(self.config.num_players)]
        self.face_up_cards = []

        for _ in range(self.config.hand_size):
            for player in self.players:
                card = self.deck.draw()
                if card:
                    player.hand.append(card)

        for _ in range(self.config.face_up_size):
            card = self.deck.draw()
            if card:
                self.face_up_cards.append(card)

        self.current_player_idx = 0
        self.turn_phase = TurnPhase.PLAY if self.deck.is_empty() else TurnPhase.DRAW
        logger.debug(
            f"Dealt {self.config.num_players} hands of {self.config.hand_size}, "
            f"{len(self.face_up_cards)} face-up, {len(self.deck)} left in deck"
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def current_player(self) -> Optional[Player]:
        if 0 <= self.current_player_idx < len(self.players):
            return self.players[self.current_player_idx]
        return None

    def get_player(self, player_id: int) -> Optional[Player]:
        if isinstance(player_id, int) and 0 <= player_id < len(self.players):
            return self.players[player_id]
        return None

    def is_game_over(self) -> bool:
        """True once the deck is empty and every hand has been played out."""
        return self.deck.is_empty() and all(not p.hand for p in self.players)

    def analyze(self, player_id: int, card: Card) -> CaptureAnalysis:
        """Capture analysis of ``card`` for ``player_id`` against the current table."""
        return analyze_move(self.face_up_cards, self.players, player_id, card)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _require_turn(self, player_id: int, phase: TurnPhase) -> Player:
        player = self.get_player(player_id)
        if player is None or player_id != self.current_player_idx:
            raise InvalidAction(f"Seat {player_id} is not the current player")
        if self.turn_phase != phase:
            raise InvalidAction(f"Cannot {phase.value} during the {self.turn_phase.value} phase")
        return player

    @staticmethod
    def _require_hand_index(player: Player, hand_index: Any) -> int:
        if isinstance(hand_index, bool) or not isinstance(hand_index, int):
            raise InvalidAction(f"Hand index {hand_index!r} is not an integer")
        if not 0 <= hand_index < len(player.hand):
            raise InvalidAction(f"Hand index {hand_index} out of range")
        return hand_index

    def draw(self, player_id: int) -> ActionResult:
        """
        Draw a card into the current seat's hand and move to the PLAY phase.

        Raises:
            InvalidAction: Wrong seat or not the DRAW phase.
            EmptyDeckDraw: The deck has run out; the phase stays DRAW.
        """
        player = self._require_turn(player_id, TurnPhase.DRAW)
        if self.deck.is_empty():
            raise EmptyDeckDraw()

        card = draw_for_player(self, player)
        player.hand.append(card)
        self.turn_phase = TurnPhase.PLAY
        return ActionResult(ActionType.DRAW, player.id, card)

    def discard(self, player_id: int, hand_index: int) -> ActionResult:
        """Move a hand card to the face-up pool and end the turn."""
        player = self._require_turn(player_id, TurnPhase.PLAY)
        index = self._require_hand_index(player, hand_index)

        card = player.hand.pop(index)
        self.face_up_cards.append(card)
        self.end_turn()
        return ActionResult(ActionType.DISCARD, player.id, card)

    def capture(self, player_id: int, hand_index: int) -> ActionResult:
        """
        Play a hand card as a capture.

        Cards move into the acting player's pile in a fixed order: stolen
        runs (in their original pile order), then table matches, then the
        played card. With cards left in the deck the player draws again;
        otherwise the turn passes.

        Raises:
            InvalidAction: Wrong seat or phase, bad index, or nothing to capture.
        """
        player = self._require_turn(player_id, TurnPhase.PLAY)
        index = self._require_hand_index(player, hand_index)

        card = player.hand[index]
        analysis = self.analyze(player.id, card)
        if not analysis.can_capture:
            raise InvalidAction(f"{card} has nothing to capture")

        player.hand.pop(index)

        for target in analysis.steal_targets:
            opponent = self.players[target.opponent_id]
            run_length = len(target.cards)
            stolen = opponent.pile[-run_length:]
            del opponent.pile[-run_length:]
            player.pile.extend(stolen)

        if analysis.table_match:
            matched_ids = {c.id for c in analysis.table_match}
            self.face_up_cards = [c for c in self.face_up_cards if c.id not in matched_ids]
            player.pile.extend(analysis.table_match)

        player.pile.append(card)

        extra_turn = not self.deck.is_empty()
        if extra_turn:
            self.turn_phase = TurnPhase.DRAW
        else:
            self.end_turn()
        return ActionResult(ActionType.CAPTURE, player.id, card, analysis=analysis, extra_turn=extra_turn)

    def end_turn(self) -> None:
        """
        Pass the turn to the next seat.

        The next phase is DRAW while the deck has cards, else PLAY. Hands stay
        level because every seat plays one card per turn, so the next seat
        always has a card while the game is still running.
        """
        self.current_player_idx = (self.current_player_idx + 1) % len(self.players)
        self.turn_phase = TurnPhase.DRAW if not self.deck.is_empty() else TurnPhase.PLAY

    def apply_action(
        self,
        player_id: int,
        action: ActionType,
        hand_index: Optional[int] = None,
    ) -> ActionResult:
        """Dispatch an action by type (used by the network layer and the bot)."""
        if action == ActionType.DRAW:
            return self.draw(player_id)
        if action == ActionType.DISCARD:
            return self.discard(player_id, hand_index)
        if action == ActionType.CAPTURE:
            return self.capture(player_id, hand_index)
        raise InvalidAction(f"Unknown action {action!r}")

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    def final_standings(self) -> list[dict]:
        """Every seat with its pile and score, in seat order."""
        return [p.to_final_dict() for p in self.players]

    def winner_ids(self) -> list[int]:
        """Seats sharing the highest score."""
        if not self.players:
            return []
        best = max(p.score() for p in self.players)
        return [p.id for p in self.players if p.score() == best]

    def get_state(self, for_player_id: Optional[int]) -> dict:
        """
        Get the sanitized game state for one seat.

        Only the recipient's hand is included; every other seat reports just
        its hand count. The deck is reduced to its size.

        Args:
            for_player_id: Seat that will receive this state.

        Returns:
            Dict suitable for JSON serialization.
        """
        return {
            "deck_count": self.deck.cards_remaining(),
            "face_up_cards": [c.to_dict() for c in self.face_up_cards],
            "current_player_idx": self.current_player_idx,
            "turn_phase": self.turn_phase.value,
            "players": [p.to_public_dict(reveal_hand=p.id == for_player_id) for p in self.players],
        }
