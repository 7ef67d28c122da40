"""
Logging configuration for the Daketi game server.

Provides:
- JSONFormatter for production (one JSON object per line)
- Colored human-readable formatter for development
- Per-connection and per-room context via context variables
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Set by the WebSocket endpoint and by room follow-up tasks
connection_id_var: ContextVar[Optional[str]] = ContextVar("connection_id", default=None)
room_code_var: ContextVar[Optional[str]] = ContextVar("room_code", default=None)


def _context(record: logging.LogRecord) -> dict:
    """Context for a record: explicit ``extra`` fields win over context variables."""
    context = {
        "connection_id": getattr(record, "connection_id", None) or connection_id_var.get(),
        "room_code": getattr(record, "room_code", None) or room_code_var.get(),
    }
    seat_id = getattr(record, "seat_id", None)
    if seat_id is not None:
        context["seat_id"] = seat_id
    return {k: v for k, v in context.items() if v is not None}


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for production log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }

        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter with colors and room/connection context."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        context = _context(record)
        parts = []
        if "room_code" in context:
            parts.append(f"room={context['room_code']}")
        if "seat_id" in context:
            parts.append(f"seat={context['seat_id']}")
        if "connection_id" in context:
            parts.append(f"conn={context['connection_id'][:8]}")
        suffix = f" [{', '.join(parts)}]" if parts else ""

        output = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{suffix} - {record.getMessage()}"
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        environment: Environment name (production uses JSON, else human-readable).
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if environment == "production":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")
