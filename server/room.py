"""
Room management for multiplayer Daketi games.

This module binds transient WebSocket connections to persistent seats and
owns per-room messaging.

A Room contains:
    - A unique 4-letter code for joining
    - A Game instance, dealt when the room is created
    - The live connections, keyed by connection id
    - A lock that serializes every mutation of the game
    - The pending turn follow-up task (see turns.py)

Identity model:
    Each seat (game.Player) carries two keys. The connection id is volatile
    and cleared when the socket drops, at which point the bot takes over.
    The persistent id survives that, so the same human can rejoin the seat.
"""

import asyncio
import logging
import random
import string
import time
from dataclasses import dataclass, field
from typing import Optional

from fastapi import WebSocket

from constants import ROOM_CODE_LENGTH
from errors import RoomFull, RoomNotFound
from game import ActionResult, ActionType, Game, GameConfig, Player

logger = logging.getLogger(__name__)


@dataclass
class Room:
    """
    A game room hosting one Daketi table.

    Attributes:
        code: Room code for joining (e.g., "ABCD").
        game: The Game instance containing the table state.
        connections: Live WebSockets keyed by connection id.
        game_lock: asyncio.Lock serializing all game mutations and broadcasts.
        followup_task: Pending animate/state/bot chain, if any.
        abandoned_at: Monotonic time the last live connection left.
        game_over_announced: Set once game_over has been sent.
    """

    code: str
    game: Game = field(default_factory=Game)
    connections: dict[str, WebSocket] = field(default_factory=dict)
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    followup_task: Optional[asyncio.Task] = None
    abandoned_at: Optional[float] = None
    game_over_announced: bool = False

    # -------------------------------------------------------------------------
    # Seats
    # -------------------------------------------------------------------------

    def seat_for_connection(self, connection_id: str) -> Optional[Player]:
        for player in self.game.players:
            if player.connection_id == connection_id:
                return player
        return None

    def seat_for_identity(self, persistent_id: Optional[str]) -> Optional[Player]:
        if not persistent_id:
            return None
        for player in self.game.players:
            if player.persistent_id == persistent_id:
                return player
        return None

    def open_seats(self) -> list[Player]:
        """Bot seats that no human has ever claimed."""
        return [p for p in self.game.players if p.is_bot and p.persistent_id is None]

    def claim_seat(
        self,
        connection_id: str,
        websocket: WebSocket,
        name: str,
        persistent_id: str,
    ) -> Player:
        """
        Bind a connection to a seat.

        A persistent id that already owns a seat reclaims it (reconnection),
        replacing any stale connection that seat still had. Otherwise the
        first unclaimed bot seat is taken.

        Args:
            connection_id: Transient id of the joining connection.
            websocket: The joining connection.
            name: Display name. On reconnect an empty name keeps the old one;
                a new seat falls back to "Guest".
            persistent_id: Stable identity of the human.

        Returns:
            The bound seat.

        Raises:
            RoomFull: No seat matches the identity and none is free.
        """
        seat = self.seat_for_identity(persistent_id)
        if seat is not None:
            if seat.connection_id and seat.connection_id != connection_id:
                self.connections.pop(seat.connection_id, None)
            logger.info(f"Seat {seat.id} reclaimed by {seat.name} in room {self.code}", extra={"seat_id": seat.id})
        else:
            free = self.open_seats()
            if not free:
                raise RoomFull()
            seat = free[0]
            name = name or "Guest"
            logger.info(f"{name} took seat {seat.id} in room {self.code}", extra={"seat_id": seat.id})

        seat.bind_connection(connection_id, persistent_id, name)
        self.connections[connection_id] = websocket
        self.abandoned_at = None
        return seat

    def release_connection(self, connection_id: str, now: Optional[float] = None) -> Optional[Player]:
        """
        Drop a connection; its seat (if any) falls back to the bot.

        Returns:
            The seat that lost its connection, or None.
        """
        self.connections.pop(connection_id, None)
        seat = self.seat_for_connection(connection_id)
        if seat is not None:
            seat.drop_connection()
            logger.info(f"{seat.name} left room {self.code}, bot takes seat {seat.id}", extra={"seat_id": seat.id})

        if not self.connections and self.abandoned_at is None:
            self.abandoned_at = now if now is not None else time.monotonic()
        return seat

    def live_connection_count(self) -> int:
        return len(self.connections)

    def bot_seat_count(self) -> int:
        return sum(1 for p in self.game.players if p.is_bot)

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------

    def joined_message(self, seat: Player) -> dict:
        return {
            "type": "room_joined",
            "room_code": self.code,
            "seat_id": seat.id,
            "persistent_id": seat.persistent_id,
            "config": self.game.config.to_dict(),
            "state": self.game.get_state(seat.id),
        }

    async def _send(self, connection_id: str, websocket: WebSocket, message: dict) -> None:
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.debug(f"Dropped {message.get('type')} to {connection_id} in room {self.code}: {e}")

    async def send_to(self, connection_id: str, message: dict) -> None:
        """Send a message to a single connection."""
        websocket = self.connections.get(connection_id)
        if websocket is not None:
            await self._send(connection_id, websocket, message)

    async def broadcast(self, message: dict) -> None:
        """Send the same message to every live connection in the room."""
        for connection_id, websocket in list(self.connections.items()):
            await self._send(connection_id, websocket, message)

    async def broadcast_state(self) -> None:
        """Send every bound seat its own sanitized view of the table."""
        for player in self.game.players:
            if not player.is_connected:
                continue
            await self.send_to(player.connection_id, {
                "type": "state_update",
                "state": self.game.get_state(player.id),
            })

    async def broadcast_animation(self, result: ActionResult) -> None:
        """Describe what just happened; a drawn card is revealed to the drawer only."""
        for player in self.game.players:
            if not player.is_connected:
                continue
            reveal = result.action != ActionType.DRAW or player.id == result.seat_id
            await self.send_to(player.connection_id, {
                "type": "animation",
                "action": result.action.value,
                "seat_id": result.seat_id,
                "details": result.animation_details(reveal_card=reveal),
            })

    def game_over_message(self) -> dict:
        return {
            "type": "game_over",
            "players": self.game.final_standings(),
            "winners": self.game.winner_ids(),
        }

    async def announce_game_over(self) -> bool:
        """
        Send final standings once.

        Returns:
            True if this call sent the announcement.
        """
        if self.game_over_announced:
            return False
        self.game_over_announced = True
        scores = ", ".join(f"{p.name}={p.score()}" for p in self.game.players)
        logger.info(f"Game over in room {self.code}: {scores}")
        await self.broadcast(self.game_over_message())
        return True


class RoomManager:
    """
    Registry of all active rooms, keyed by room code.

    Rooms are created on a host's request and evicted once they have had no
    live connection for the configured idle timeout.
    """

    def __init__(self) -> None:
        """Initialize an empty room manager."""
        self.rooms: dict[str, Room] = {}

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique upper-case room code."""
        for _ in range(max_attempts):
            code = "".join(random.choices(string.ascii_uppercase, k=ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def create_room(self, game_config: Optional[GameConfig] = None, seed: Optional[int] = None) -> Room:
        """
        Create a room and deal its game.

        Args:
            game_config: Validated table settings (defaults if None).
            seed: Optional shuffle seed for a reproducible deal.

        Returns:
            The newly created Room.
        """
        code = self._generate_code()
        game = Game(config=game_config or GameConfig(), seed=seed)
        game.deal()
        room = Room(code=code, game=game)
        self.rooms[code] = room
        logger.info(f"Room {code} created ({game.config.num_players} seats, seed {game.seed})")
        return room

    def get_room(self, code: Optional[str]) -> Optional[Room]:
        """
        Get a room by its code (case-insensitive).

        Returns:
            The Room if found, None otherwise.
        """
        if not code:
            return None
        return self.rooms.get(str(code).strip().upper())

    def require_room(self, code: Optional[str]) -> Room:
        """Like get_room, but raises RoomNotFound."""
        room = self.get_room(code)
        if room is None:
            raise RoomNotFound()
        return room

    def remove_room(self, code: str) -> Optional[Room]:
        """Delete a room and cancel its pending follow-up."""
        room = self.rooms.pop(code, None)
        if room is not None:
            if room.followup_task and not room.followup_task.done():
                room.followup_task.cancel()
            logger.info(f"Room {code} removed")
        return room

    def evict_abandoned(self, max_idle_seconds: float, now: Optional[float] = None) -> list[str]:
        """
        Remove rooms that have had no live connection for too long.

        Returns:
            Codes of the evicted rooms.
        """
        now = now if now is not None else time.monotonic()
        stale = [
            code for code, room in self.rooms.items()
            if room.abandoned_at is not None and now - room.abandoned_at >= max_idle_seconds
        ]
        for code in stale:
            self.remove_room(code)
        return stale

    def shutdown(self) -> None:
        """Cancel every pending follow-up and forget all rooms."""
        for code in list(self.rooms):
            self.remove_room(code)
