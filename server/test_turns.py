"""
Tests for the deferred animate -> state -> bot follow-up chain.

Run with: pytest test_turns.py -v
"""

import asyncio

import pytest

from config import TurnTiming
from game import ActionType, GameConfig
from room import RoomManager
from turns import TurnScheduler


class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)

    def types(self) -> list[str]:
        return [m["type"] for m in self.messages]


class RecordingSleep:
    """Sleep stand-in that records delays and only yields to the loop."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)
        await asyncio.sleep(0)


class GatedSleep:
    """Sleep stand-in that blocks until the test opens the gate."""

    def __init__(self):
        self.gate = asyncio.Event()

    async def __call__(self, delay: float):
        await self.gate.wait()


def make_room(num_players=3, seed=5):
    config = GameConfig(num_players=num_players, hand_size=4, face_up_size=4)
    return RoomManager().create_room(config, seed=seed)


class TestFromConfig:

    def test_delays_come_from_timing(self):
        scheduler = TurnScheduler.from_config(TurnTiming(0.5, 0.25, 0.75))
        assert scheduler.animation_delay == 0.5
        assert scheduler.bot_think_delay == 0.25
        assert scheduler.bot_animation_delay == 0.75


class TestFollowUp:

    @pytest.mark.asyncio
    async def test_all_bot_room_runs_to_completion(self):
        room = make_room()
        scheduler = TurnScheduler(0, 0, 0)

        async with room.game_lock:
            scheduler.schedule(room)
        await scheduler.wait_idle(room)

        assert room.game.is_game_over()
        assert room.game_over_announced
        assert sum(len(p.pile) for p in room.game.players) + len(room.game.face_up_cards) == 52

    @pytest.mark.asyncio
    async def test_every_animation_is_followed_by_state(self):
        room = make_room()
        ws = MockWebSocket()
        room.claim_seat("conn-0", ws, "Ann", "pid-0")
        scheduler = TurnScheduler(0, 0, 0)

        async with room.game_lock:
            room.game.apply_action(0, ActionType.DRAW)
            result = room.game.apply_action(0, ActionType.DISCARD, 0)
            await room.broadcast_animation(result)
            scheduler.schedule(room)
        await scheduler.wait_idle(room)

        types = ws.types()
        for i, msg_type in enumerate(types):
            if msg_type == "animation":
                assert types[i + 1] in ("state_update", "game_over")
        assert types[-1] == "state_update"
        assert room.game.current_player_idx == 0

    @pytest.mark.asyncio
    async def test_delays_follow_protocol(self):
        room = make_room(num_players=2)
        sleep = RecordingSleep()
        scheduler = TurnScheduler(1.0, 2.0, 3.0, sleep=sleep)
        room.claim_seat("conn-0", MockWebSocket(), "Ann", "pid-0")

        async with room.game_lock:
            room.game.apply_action(0, ActionType.DRAW)
            room.game.apply_action(0, ActionType.DISCARD, 0)
            scheduler.schedule(room)
        await scheduler.wait_idle(room)

        assert sleep.delays[0] == 1.0
        # Each bot move is think -> act -> animation delay
        assert sleep.delays[1::2] == [2.0] * len(sleep.delays[1::2])
        assert sleep.delays[2::2] == [3.0] * len(sleep.delays[2::2])

    @pytest.mark.asyncio
    async def test_human_turn_stops_chain(self):
        room = make_room()
        ws = MockWebSocket()
        room.claim_seat("conn-0", ws, "Ann", "pid-0")
        scheduler = TurnScheduler(0, 0, 0)

        async with room.game_lock:
            room.game.apply_action(0, ActionType.DRAW)
            scheduler.schedule(room)
        await scheduler.wait_idle(room)

        assert ws.types() == ["state_update"]
        assert room.game.current_player_idx == 0

    @pytest.mark.asyncio
    async def test_reschedule_cancels_pending(self):
        room = make_room()
        scheduler = TurnScheduler(60, 60, 60)

        async with room.game_lock:
            first = scheduler.schedule(room)
            second = scheduler.schedule(room)
        await asyncio.wait({first})

        assert first.cancelled()
        assert scheduler.is_pending(room)
        scheduler.cancel(room)
        await asyncio.wait({second})
        assert not scheduler.is_pending(room)

    @pytest.mark.asyncio
    async def test_game_over_sent_once(self):
        room = make_room(num_players=2)
        ws = MockWebSocket()
        room.claim_seat("conn-0", ws, "Ann", "pid-0")
        room.release_connection("conn-0")
        room.connections["spectator"] = ws
        scheduler = TurnScheduler(0, 0, 0)

        async with room.game_lock:
            scheduler.schedule(room)
        await scheduler.wait_idle(room)
        async with room.game_lock:
            scheduler.schedule(room)
        await scheduler.wait_idle(room)

        assert ws.types().count("game_over") == 1


class TestDisconnectMidTurn:

    @pytest.mark.asyncio
    async def test_disconnected_seat_is_played_by_bot(self):
        room = make_room(num_players=2)
        ws = MockWebSocket()
        room.claim_seat("conn-0", ws, "Ann", "pid-0")
        sleep = GatedSleep()
        scheduler = TurnScheduler(1, 1, 1, sleep=sleep)

        async with room.game_lock:
            room.game.apply_action(0, ActionType.DRAW)
            scheduler.schedule(room)

        async with room.game_lock:
            room.release_connection("conn-0")

        sleep.gate.set()
        await scheduler.wait_idle(room)

        assert room.game.is_game_over()
        assert room.game.players[0].hand == []

    @pytest.mark.asyncio
    async def test_reconnect_before_follow_up_stops_chain(self):
        room = make_room(num_players=2)
        room.claim_seat("conn-0", MockWebSocket(), "Ann", "pid-0")
        sleep = GatedSleep()
        scheduler = TurnScheduler(1, 1, 1, sleep=sleep)

        async with room.game_lock:
            room.release_connection("conn-0")
            scheduler.schedule(room)

        ws = MockWebSocket()
        async with room.game_lock:
            room.claim_seat("conn-1", ws, "Ann", "pid-0")

        sleep.gate.set()
        await scheduler.wait_idle(room)

        assert not room.game.is_game_over()
        assert room.game.current_player_idx == 0
        assert ws.types() == ["state_update"]
