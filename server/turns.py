"""
Deferred turn follow-ups: animate, wait, publish state, let bots play.

After an action the client first receives an animation event. The state it
produced is only published once the animation has had time to play, and if
the next seat is a bot its move follows the same pattern, until a human is
up or the game ends.

Each room has at most one follow-up task. Every step takes the room lock and
re-reads the game, so a seat that disconnects mid-chain is simply played by
the bot on the next step, and a seat that reconnects stops the chain.

Scheduling cancels the room's pending follow-up and must be done while
holding the room lock. The task only awaits outside the lock while sleeping
or waiting for the lock, so a cancelled follow-up never stops halfway
through a mutation.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ai import play_bot_turn
from config import TurnTiming
from game import ActionResult
from logging_config import room_code_var
from room import Room

logger = logging.getLogger(__name__)


class TurnScheduler:
    """Runs the animate -> delay -> state (-> bot move) chain for each room."""

    def __init__(
        self,
        animation_delay: float = 1.0,
        bot_think_delay: float = 1.0,
        bot_animation_delay: float = 1.2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.animation_delay = animation_delay
        self.bot_think_delay = bot_think_delay
        self.bot_animation_delay = bot_animation_delay
        self._sleep = sleep

    @classmethod
    def from_config(cls, timing: TurnTiming) -> "TurnScheduler":
        return cls(
            animation_delay=timing.animation_delay,
            bot_think_delay=timing.bot_think_delay,
            bot_animation_delay=timing.bot_animation_delay,
        )

    def is_pending(self, room: Room) -> bool:
        return room.followup_task is not None and not room.followup_task.done()

    def schedule(self, room: Room) -> asyncio.Task:
        """
        (Re)start the room's follow-up chain. Call with room.game_lock held.
        """
        self.cancel(room)
        task = asyncio.create_task(self._follow_up(room), name=f"followup-{room.code}")
        task.add_done_callback(self._report_failure)
        room.followup_task = task
        return task

    def cancel(self, room: Room) -> None:
        if self.is_pending(room):
            room.followup_task.cancel()

    async def wait_idle(self, room: Room) -> None:
        """Wait until the room has no pending follow-up."""
        while self.is_pending(room):
            await asyncio.wait({room.followup_task})

    @staticmethod
    def _report_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Turn follow-up {task.get_name()} failed", exc_info=exc)

    async def _follow_up(self, room: Room) -> None:
        room_code_var.set(room.code)
        await self._sleep(self.animation_delay)

        while True:
            async with room.game_lock:
                if not await self._publish(room):
                    return

            await self._sleep(self.bot_think_delay)

            async with room.game_lock:
                if await self._bot_step(room) is None:
                    return

            await self._sleep(self.bot_animation_delay)

    async def _publish(self, room: Room) -> bool:
        """
        Announce game over or broadcast state.

        Returns:
            True if the current seat is a bot that should move next.
        """
        if room.game.is_game_over():
            await room.announce_game_over()
            return False

        await room.broadcast_state()
        current = room.game.current_player()
        return current is not None and current.is_bot

    async def _bot_step(self, room: Room) -> Optional[ActionResult]:
        current = room.game.current_player()
        if current is None or not current.is_bot or room.game.is_game_over():
            return None

        result = play_bot_turn(room.game)
        if result is None:
            logger.warning(f"Bot in seat {current.id} of room {room.code} had no move", extra={"seat_id": current.id})
            return None

        logger.debug(
            f"Bot seat {current.id} in room {room.code}: {result.action.value} {result.card}",
            extra={"seat_id": current.id},
        )
        await room.broadcast_animation(result)
        return result
