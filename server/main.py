"""FastAPI WebSocket server for the Daketi card game."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from handlers import HANDLERS, ConnectionContext, handle_disconnect
from logging_config import connection_id_var, setup_logging
from room import RoomManager
from turns import TurnScheduler

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


room_manager = RoomManager()
scheduler = TurnScheduler.from_config(config.timing)

_room_sweep_task = None


async def _periodic_room_sweep():
    """Periodic task to evict rooms nobody has been connected to for a while."""
    while True:
        try:
            await asyncio.sleep(config.ROOM_SWEEP_INTERVAL_SECONDS)
            evicted = room_manager.evict_abandoned(config.ROOM_IDLE_TIMEOUT_MINUTES * 60)
            if evicted:
                logger.info(f"Evicted idle rooms: {', '.join(evicted)}")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Room sweep failed: {e}")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(room_manager.rooms.values()):
        for websocket in list(room.connections.values()):
            try:
                await websocket.close(code=1001, reason="Server shutting down")
            except Exception as e:
                logger.debug(f"Error closing websocket in room {room.code}: {e}")
    logger.info("All WebSocket connections closed")


async def _shutdown_services():
    """Gracefully shut down the sweep task and all rooms."""
    if _room_sweep_task:
        _room_sweep_task.cancel()
        try:
            await _room_sweep_task
        except asyncio.CancelledError:
            pass
        logger.info("Room sweep task stopped")

    await _close_all_websockets()
    room_manager.shutdown()
    logger.info("All rooms cleaned up")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler: wire routers, start background tasks."""
    global _room_sweep_task

    from routers.health import set_health_dependencies
    from routers.rooms import set_room_manager
    set_health_dependencies(room_manager=room_manager)
    set_room_manager(room_manager)

    _room_sweep_task = asyncio.create_task(_periodic_room_sweep())

    logger.info(f"Daketi server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _shutdown_services()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Daketi Card Game",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Routers
# =============================================================================

from routers.health import router as health_router
from routers.rooms import router as rooms_router
app.include_router(health_router)
app.include_router(rooms_router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    connection_id_var.set(connection_id)
    logger.debug(f"WebSocket connected as {connection_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
    )

    # Shared dependencies passed to every handler
    handler_deps = dict(
        room_manager=room_manager,
        scheduler=scheduler,
    )

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                logger.debug(f"Ignoring malformed message from {connection_id}")
                continue
            if not isinstance(data, dict):
                continue
            handler = HANDLERS.get(data.get("type"))
            if handler is None:
                logger.debug(f"Ignoring unknown message type {data.get('type')!r}")
                continue
            try:
                await handler(data, ctx, **handler_deps)
            except WebSocketDisconnect:
                raise
            except Exception:
                logger.exception(f"Handler {data.get('type')} failed")
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
    finally:
        await handle_disconnect(ctx, scheduler)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Daketi server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
