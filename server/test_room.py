"""
Test suite for Room and RoomManager.

Covers:
- Room creation, unique codes and case-insensitive lookup
- Seat claiming, room full and reconnect by persistent id
- Bot takeover on release and abandoned-room eviction
- Sanitized broadcasts and drawn-card privacy

Run with: pytest test_room.py -v
"""

import asyncio
import logging

import pytest

from errors import RoomFull, RoomNotFound
from game import ActionType, GameConfig
from room import Room, RoomManager


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)

    def messages_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == msg_type]


class BrokenWebSocket:
    async def send_json(self, data: dict):
        raise RuntimeError("connection closed")


def make_room(num_players=2, seed=1) -> Room:
    return RoomManager().create_room(GameConfig(num_players=num_players, hand_size=4, face_up_size=4), seed=seed)


# =============================================================================
# RoomManager tests
# =============================================================================

class TestRoomManagerCreate:

    def test_create_room_returns_dealt_room(self):
        rm = RoomManager()
        room = rm.create_room()
        assert len(room.code) == 4
        assert room.code.isupper()
        assert room.code in rm.rooms
        assert all(p.hand for p in room.game.players)
        assert all(p.is_bot for p in room.game.players)

    def test_create_multiple_rooms_unique_codes(self):
        rm = RoomManager()
        codes = {rm.create_room().code for _ in range(20)}
        assert len(codes) == 20

    def test_seeded_rooms_deal_the_same(self):
        rm = RoomManager()
        a = rm.create_room(seed=77)
        b = rm.create_room(seed=77)
        assert [(x.rank, x.suit) for x in a.game.players[0].hand] == [(x.rank, x.suit) for x in b.game.players[0].hand]

    def test_remove_room(self):
        rm = RoomManager()
        room = rm.create_room()
        assert rm.remove_room(room.code) is room
        assert room.code not in rm.rooms

    def test_remove_nonexistent_room(self):
        assert RoomManager().remove_room("NOPE") is None


class TestRoomManagerLookup:

    def test_get_room_case_insensitive(self):
        rm = RoomManager()
        room = rm.create_room()
        assert rm.get_room(room.code.lower()) is room
        assert rm.get_room(f"  {room.code} ") is room

    def test_get_room_missing(self):
        rm = RoomManager()
        assert rm.get_room("ZZZZ") is None
        assert rm.get_room(None) is None
        assert rm.get_room("") is None

    def test_require_room_raises(self):
        with pytest.raises(RoomNotFound):
            RoomManager().require_room("ZZZZ")


class TestRoomEviction:

    def test_rooms_with_connections_are_kept(self):
        rm = RoomManager()
        room = rm.create_room()
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        assert rm.evict_abandoned(0, now=10_000) == []

    def test_abandoned_room_evicted_after_timeout(self):
        rm = RoomManager()
        room = rm.create_room()
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        room.release_connection("conn-1", now=100.0)

        assert rm.evict_abandoned(60, now=150.0) == []
        assert rm.evict_abandoned(60, now=161.0) == [room.code]
        assert room.code not in rm.rooms

    def test_rejoin_clears_abandoned_mark(self):
        room = make_room()
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        room.release_connection("conn-1", now=100.0)
        room.claim_seat("conn-2", MockWebSocket(), "Ann", "pid-1")
        assert room.abandoned_at is None

    def test_shutdown_forgets_rooms(self):
        rm = RoomManager()
        rm.create_room()
        rm.create_room()
        rm.shutdown()
        assert rm.rooms == {}


# =============================================================================
# Seat tests
# =============================================================================

class TestClaimSeat:

    def test_first_claim_takes_seat_zero(self):
        room = make_room()
        seat = room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        assert seat.id == 0
        assert seat.name == "Ann"
        assert not seat.is_bot
        assert seat.connection_id == "conn-1"
        assert seat.is_connected
        assert seat.persistent_id == "pid-1"
        assert room.live_connection_count() == 1

    def test_second_claim_takes_next_bot_seat(self):
        room = make_room(num_players=3)
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        seat = room.claim_seat("conn-2", MockWebSocket(), "Ben", "pid-2")
        assert seat.id == 1
        assert room.bot_seat_count() == 1

    def test_room_full(self):
        room = make_room(num_players=2)
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        room.claim_seat("conn-2", MockWebSocket(), "Ben", "pid-2")
        with pytest.raises(RoomFull):
            room.claim_seat("conn-3", MockWebSocket(), "Cat", "pid-3")

    def test_disconnected_seat_is_not_open_to_strangers(self):
        room = make_room(num_players=2)
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        room.claim_seat("conn-2", MockWebSocket(), "Ben", "pid-2")
        room.release_connection("conn-2")
        with pytest.raises(RoomFull):
            room.claim_seat("conn-3", MockWebSocket(), "Cat", "pid-3")

    def test_reconnect_reclaims_same_seat(self):
        room = make_room(num_players=3)
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        first = room.claim_seat("conn-2", MockWebSocket(), "Ben", "pid-2")
        room.release_connection("conn-2")
        assert first.is_bot

        again = room.claim_seat("conn-9", MockWebSocket(), "Ben", "pid-2")
        assert again is first
        assert not again.is_bot
        assert again.connection_id == "conn-9"
        assert again.persistent_id == "pid-2"

    def test_reconnect_replaces_stale_connection(self):
        room = make_room()
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        room.claim_seat("conn-2", MockWebSocket(), "Ann", "pid-1")
        assert "conn-1" not in room.connections
        assert room.seat_for_connection("conn-1") is None
        assert room.seat_for_connection("conn-2").id == 0

    def test_nameless_claims(self):
        room = make_room()
        seat = room.claim_seat("conn-1", MockWebSocket(), "", "pid-1")
        assert seat.name == "Guest"

        room.claim_seat("conn-2", MockWebSocket(), "Ann", "pid-2")
        room.release_connection("conn-2")
        again = room.claim_seat("conn-3", MockWebSocket(), "", "pid-2")
        assert again.name == "Ann"

    def test_blank_identity_never_matches(self):
        room = make_room()
        assert room.seat_for_identity("") is None
        assert room.seat_for_identity(None) is None


class TestReleaseConnection:

    def test_release_hands_seat_to_bot(self):
        room = make_room()
        seat = room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        released = room.release_connection("conn-1", now=5.0)

        assert released is seat
        assert seat.is_bot
        assert seat.connection_id is None
        assert not seat.is_connected
        assert seat.persistent_id == "pid-1"
        assert seat.name == "Ann"
        assert room.abandoned_at == 5.0

    def test_release_unknown_connection(self):
        room = make_room()
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        assert room.release_connection("conn-x") is None
        assert room.abandoned_at is None

    def test_seat_changes_are_logged_with_seat_id(self, caplog):
        room = make_room(num_players=3)
        room.claim_seat("conn-1", MockWebSocket(), "Ann", "pid-1")
        with caplog.at_level(logging.INFO, logger="room"):
            room.claim_seat("conn-2", MockWebSocket(), "Ben", "pid-2")
            room.release_connection("conn-2")
            room.claim_seat("conn-3", MockWebSocket(), "Ben", "pid-2")

        seat_records = [r for r in caplog.records if hasattr(r, "seat_id")]
        assert [r.seat_id for r in seat_records] == [1, 1, 1]


# =============================================================================
# Messaging tests
# =============================================================================

class TestMessaging:

    @pytest.mark.asyncio
    async def test_broadcast_state_is_sanitized_per_seat(self):
        room = make_room(num_players=3)
        ws0, ws1 = MockWebSocket(), MockWebSocket()
        room.claim_seat("conn-0", ws0, "Ann", "pid-0")
        room.claim_seat("conn-1", ws1, "Ben", "pid-1")

        await room.broadcast_state()

        for seat_id, ws in ((0, ws0), (1, ws1)):
            [msg] = ws.messages_of_type("state_update")
            for entry in msg["state"]["players"]:
                if entry["id"] == seat_id:
                    assert len(entry["hand"]) == entry["hand_count"]
                else:
                    assert entry["hand"] is None

    @pytest.mark.asyncio
    async def test_drawn_card_only_revealed_to_drawer(self):
        room = make_room()
        ws0, ws1 = MockWebSocket(), MockWebSocket()
        room.claim_seat("conn-0", ws0, "Ann", "pid-0")
        room.claim_seat("conn-1", ws1, "Ben", "pid-1")

        result = room.game.apply_action(0, ActionType.DRAW)
        await room.broadcast_animation(result)

        [mine] = ws0.messages_of_type("animation")
        [theirs] = ws1.messages_of_type("animation")
        assert mine["action"] == "draw"
        assert mine["seat_id"] == 0
        assert mine["details"]["card"]["rank"] == result.card.rank.value
        assert theirs["details"]["card"] == {"id": result.card.id}

    @pytest.mark.asyncio
    async def test_discard_is_public(self):
        room = make_room()
        ws0, ws1 = MockWebSocket(), MockWebSocket()
        room.claim_seat("conn-0", ws0, "Ann", "pid-0")
        room.claim_seat("conn-1", ws1, "Ben", "pid-1")

        room.game.apply_action(0, ActionType.DRAW)
        result = room.game.apply_action(0, ActionType.DISCARD, 0)
        await room.broadcast_animation(result)

        [theirs] = ws1.messages_of_type("animation")
        assert theirs["details"]["card"]["rank"] == result.card.rank.value

    @pytest.mark.asyncio
    async def test_broken_socket_does_not_stop_broadcast(self):
        room = make_room()
        ws1 = MockWebSocket()
        room.claim_seat("conn-0", BrokenWebSocket(), "Ann", "pid-0")
        room.claim_seat("conn-1", ws1, "Ben", "pid-1")

        await room.broadcast({"type": "ping"})
        assert ws1.messages == [{"type": "ping"}]

    @pytest.mark.asyncio
    async def test_game_over_announced_once(self):
        room = make_room()
        ws = MockWebSocket()
        room.claim_seat("conn-0", ws, "Ann", "pid-0")

        assert await room.announce_game_over() is True
        assert await room.announce_game_over() is False

        [msg] = ws.messages_of_type("game_over")
        assert [p["id"] for p in msg["players"]] == [0, 1]
        assert "pile" in msg["players"][0]
        assert msg["winners"] == room.game.winner_ids()

    def test_joined_message(self):
        room = make_room()
        seat = room.claim_seat("conn-0", MockWebSocket(), "Ann", "pid-0")
        msg = room.joined_message(seat)
        assert msg["type"] == "room_joined"
        assert msg["room_code"] == room.code
        assert msg["seat_id"] == 0
        assert msg["persistent_id"] == "pid-0"
        assert msg["config"] == {"num_players": 2, "hand_size": 4, "face_up_size": 4}
        assert msg["state"]["players"][0]["hand"] is not None

    @pytest.mark.asyncio
    async def test_remove_room_cancels_followup(self):
        rm = RoomManager()
        room = rm.create_room()
        room.followup_task = asyncio.create_task(asyncio.sleep(60))

        rm.remove_room(room.code)
        await asyncio.wait({room.followup_task})

        assert room.followup_task.cancelled()
