"""
Error taxonomy for the Daketi server.

InvalidAction (and EmptyDeckDraw) are recovered locally: the game ignores the
call and nothing is broadcast. RoomNotFound, RoomFull and InvalidConfig are
reported to the requesting connection only.
"""


class GameError(Exception):
    """Base exception for game and room errors."""

    code = "GAME_ERROR"
    default_message = "Game error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(f"[{self.code}] {self.message}")

    def to_message(self) -> dict:
        """Client-facing error event."""
        return {"type": "error", "code": self.code, "message": self.message}


class InvalidAction(GameError):
    """Wrong seat, wrong phase, bad hand index or an uncapturable card."""

    code = "INVALID_ACTION"
    default_message = "Invalid action"


class EmptyDeckDraw(InvalidAction):
    """Draw requested after the deck ran out."""

    code = "EMPTY_DECK"
    default_message = "The deck is empty"


class RoomNotFound(GameError):
    code = "ROOM_NOT_FOUND"
    default_message = "Room not found"


class RoomFull(GameError):
    code = "ROOM_FULL"
    default_message = "Room is full"


class InvalidConfig(GameError):
    code = "INVALID_CONFIG"
    default_message = "Invalid game configuration"
