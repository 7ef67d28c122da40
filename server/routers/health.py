"""
Health check endpoints.

Provides:
- /health - Basic liveness check (is the app running?)
- /metrics - Room and seat metrics for monitoring
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Set during app initialization
_room_manager = None


def set_health_dependencies(room_manager=None):
    """Set dependencies for health checks."""
    global _room_manager
    _room_manager = room_manager


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics")
async def metrics():
    """Expose room metrics for dashboards and alerting."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _room_manager is not None:
        rooms = list(_room_manager.rooms.values())
        metrics_data.update({
            "active_rooms": len(rooms),
            "live_connections": sum(r.live_connection_count() for r in rooms),
            "bot_seats": sum(r.bot_seat_count() for r in rooms),
            "games_in_progress": sum(1 for r in rooms if not r.game.is_game_over()),
        })

    return metrics_data
