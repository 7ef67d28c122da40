"""WebSocket message handlers for the Daketi card game.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict in main.py and receive the
shared room manager and turn scheduler as keyword dependencies.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket

from config import config
from errors import GameError, InvalidAction, InvalidConfig, RoomFull, RoomNotFound
from game import ActionType, GameConfig
from logging_config import room_code_var
from room import Room, RoomManager
from turns import TurnScheduler

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    current_room: Optional[Room] = None


async def send_error(ctx: ConnectionContext, error: GameError) -> None:
    await ctx.websocket.send_json(error.to_message())


def _player_name(data: dict, default: str) -> str:
    name = str(data.get("player_name") or "").strip()
    return name[:24] or default


def _persistent_id(data: dict) -> str:
    return str(data.get("persistent_id") or "").strip() or uuid.uuid4().hex


def _resolve_room(data: dict, ctx: ConnectionContext, room_manager: RoomManager) -> Optional[Room]:
    """The room a message addresses: its room_code if given, else the connection's room."""
    if data.get("room_code"):
        return room_manager.get_room(data["room_code"])
    return ctx.current_room


async def _leave_current_room(ctx: ConnectionContext, scheduler: TurnScheduler) -> None:
    """Release this connection's seat (bot takeover) and keep the game moving."""
    room = ctx.current_room
    ctx.current_room = None
    if room is None:
        return

    async with room.game_lock:
        seat = room.release_connection(ctx.connection_id)
        if seat is None or room.game_over_announced:
            return
        await room.broadcast_state()
        if seat.id == room.game.current_player_idx and not scheduler.is_pending(room):
            scheduler.schedule(room)


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_create_room(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, scheduler: TurnScheduler, **kw) -> None:
    try:
        game_config = GameConfig.from_client_data(data.get("config"))
    except InvalidConfig as e:
        await send_error(ctx, e)
        return

    await _leave_current_room(ctx, scheduler)

    room = room_manager.create_room(game_config)
    room_code_var.set(room.code)
    async with room.game_lock:
        seat = room.claim_seat(
            ctx.connection_id,
            ctx.websocket,
            _player_name(data, "Host"),
            _persistent_id(data),
        )
        ctx.current_room = room
        await ctx.websocket.send_json(room.joined_message(seat))


async def handle_join_room(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, scheduler: TurnScheduler, **kw) -> None:
    try:
        room = room_manager.require_room(data.get("room_code"))
    except RoomNotFound as e:
        await send_error(ctx, e)
        return

    if ctx.current_room is not None and ctx.current_room is not room:
        await _leave_current_room(ctx, scheduler)

    room_code_var.set(room.code)
    async with room.game_lock:
        seat = room.seat_for_connection(ctx.connection_id)
        if seat is not None:
            await ctx.websocket.send_json(room.joined_message(seat))
            return

        try:
            seat = room.claim_seat(
                ctx.connection_id,
                ctx.websocket,
                _player_name(data, ""),
                _persistent_id(data),
            )
        except RoomFull as e:
            await send_error(ctx, e)
            return

        ctx.current_room = room
        await ctx.websocket.send_json(room.joined_message(seat))

        if room.game_over_announced:
            await ctx.websocket.send_json(room.game_over_message())
        else:
            await room.broadcast_state()


# ---------------------------------------------------------------------------
# Turn action handlers
# ---------------------------------------------------------------------------

async def handle_action(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, scheduler: TurnScheduler, **kw) -> None:
    room = _resolve_room(data, ctx, room_manager)
    if room is None:
        return

    try:
        action = ActionType(str(data.get("action", "")).lower())
    except ValueError:
        logger.debug(f"Ignoring unknown action {data.get('action')!r}")
        return

    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        payload = {}
    hand_index = payload.get("hand_index", data.get("hand_index"))

    async with room.game_lock:
        seat = room.seat_for_connection(ctx.connection_id)
        if seat is None or room.game_over_announced:
            return

        try:
            result = room.game.apply_action(seat.id, action, hand_index)
        except InvalidAction as e:
            logger.debug(
                f"Ignored {action.value} from seat {seat.id} in room {room.code}: {e.message}",
                extra={"seat_id": seat.id},
            )
            return

        await room.broadcast_animation(result)
        scheduler.schedule(room)


async def handle_toggle_cheat(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    if not config.CHEAT_TOGGLE_ENABLED:
        return

    room = _resolve_room(data, ctx, room_manager)
    if room is None:
        return

    async with room.game_lock:
        seat = room.seat_for_connection(ctx.connection_id)
        if seat is None:
            return
        claimed_id = data.get("persistent_id")
        if claimed_id and claimed_id != seat.persistent_id:
            return

        seat.is_cheater = not seat.is_cheater
        logger.debug(
            f"Seat {seat.id} in room {room.code} rigged draw {'on' if seat.is_cheater else 'off'}",
            extra={"seat_id": seat.id},
        )
        await ctx.websocket.send_json({"type": "cheat_status", "enabled": seat.is_cheater})


# ---------------------------------------------------------------------------
# Leave / Disconnect
# ---------------------------------------------------------------------------

async def handle_leave_room(data: dict, ctx: ConnectionContext, *, scheduler: TurnScheduler, **kw) -> None:
    await _leave_current_room(ctx, scheduler)


async def handle_disconnect(ctx: ConnectionContext, scheduler: TurnScheduler) -> None:
    """Socket closed: the seat is kept for a rejoin and played by the bot meanwhile."""
    await _leave_current_room(ctx, scheduler)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_room": handle_create_room,
    "join_room": handle_join_room,
    "action": handle_action,
    "toggle_cheat": handle_toggle_cheat,
    "leave_room": handle_leave_room,
}
