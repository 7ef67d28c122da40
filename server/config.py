"""
Centralized configuration for the Daketi game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file at the repository root (if it exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.timing.animation_delay)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class CardValues:
    """Card point values, counted when summing a capture pile."""
    NUMBER: int = 5   # 2 through 10
    FACE: int = 10    # J, Q, K
    ACE: int = 20

    def to_dict(self) -> dict[str, int]:
        """Get card values keyed by rank string."""
        values = {str(n): self.NUMBER for n in range(2, 11)}
        values.update({"J": self.FACE, "Q": self.FACE, "K": self.FACE, "A": self.ACE})
        return values


@dataclass
class GameDefaults:
    """Table settings used when a client omits them."""
    num_players: int = 2
    hand_size: int = 6
    face_up_size: int = 6


@dataclass
class TurnTiming:
    """
    Delays (seconds) of the animate -> wait -> state protocol.

    animation_delay: after any animation, before the resulting state is sent.
    bot_think_delay: before a bot seat acts.
    bot_animation_delay: after a bot animation, before the resulting state.
    """
    animation_delay: float = 1.0
    bot_think_delay: float = 1.0
    bot_animation_delay: float = 1.2


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Room settings
    ROOM_CODE_LENGTH: int = 4
    ROOM_IDLE_TIMEOUT_MINUTES: int = 60
    ROOM_SWEEP_INTERVAL_SECONDS: int = 60

    # Hidden rigged-draw toggle
    CHEAT_TOGGLE_ENABLED: bool = True

    card_values: CardValues = field(default_factory=CardValues)
    game_defaults: GameDefaults = field(default_factory=GameDefaults)
    timing: TurnTiming = field(default_factory=TurnTiming)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 3000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", 4),
            ROOM_IDLE_TIMEOUT_MINUTES=get_env_int("ROOM_IDLE_TIMEOUT_MINUTES", 60),
            ROOM_SWEEP_INTERVAL_SECONDS=get_env_int("ROOM_SWEEP_INTERVAL_SECONDS", 60),
            CHEAT_TOGGLE_ENABLED=get_env_bool("CHEAT_TOGGLE_ENABLED", True),
            card_values=CardValues(
                NUMBER=get_env_int("CARD_NUMBER", 5),
                FACE=get_env_int("CARD_FACE", 10),
                ACE=get_env_int("CARD_ACE", 20),
            ),
            game_defaults=GameDefaults(
                num_players=get_env_int("DEFAULT_NUM_PLAYERS", 2),
                hand_size=get_env_int("DEFAULT_HAND_SIZE", 6),
                face_up_size=get_env_int("DEFAULT_FACE_UP_SIZE", 6),
            ),
            timing=TurnTiming(
                animation_delay=get_env_float("ANIMATION_DELAY", 1.0),
                bot_think_delay=get_env_float("BOT_THINK_DELAY", 1.0),
                bot_animation_delay=get_env_float("BOT_ANIMATION_DELAY", 1.2),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
