"""
Rooms API router for Daketi.

Lets a client look up a room code before joining over the WebSocket.
"""

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])


# =============================================================================
# Response Models
# =============================================================================


class SeatSummary(BaseModel):
    """Public view of one seat."""
    seat_id: int
    name: str
    is_bot: bool
    claimed: bool  # A human owns this seat (even if currently disconnected)
    hand_count: int
    pile_count: int
    score: int


class RoomSummaryResponse(BaseModel):
    """Room lookup response."""
    room_code: str
    num_players: int
    hand_size: int
    face_up_size: int
    open_seats: int
    deck_count: int
    turn_phase: str
    current_player_idx: int
    game_over: bool
    seats: list[SeatSummary]


# =============================================================================
# Dependency Injection
# =============================================================================

_room_manager = None


def set_room_manager(room_manager) -> None:
    """Set the room manager instance."""
    global _room_manager
    _room_manager = room_manager


def get_room_manager():
    if _room_manager is None:
        raise HTTPException(status_code=503, detail="Room service unavailable")
    return _room_manager


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/{room_code}", response_model=RoomSummaryResponse)
async def get_room_summary(room_code: str):
    """Summarize a room: seats, open seats and turn state. 404 if unknown."""
    room = get_room_manager().get_room(room_code)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")

    game = room.game
    return RoomSummaryResponse(
        room_code=room.code,
        num_players=game.config.num_players,
        hand_size=game.config.hand_size,
        face_up_size=game.config.face_up_size,
        open_seats=len(room.open_seats()),
        deck_count=game.deck.cards_remaining(),
        turn_phase=game.turn_phase.value,
        current_player_idx=game.current_player_idx,
        game_over=game.is_game_over(),
        seats=[
            SeatSummary(
                seat_id=p.id,
                name=p.name,
                is_bot=p.is_bot,
                claimed=p.persistent_id is not None,
                hand_count=len(p.hand),
                pile_count=len(p.pile),
                score=p.score(),
            )
            for p in game.players
        ],
    )
