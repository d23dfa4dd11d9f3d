"""
Logging setup for the game client.

Production gets one JSON object per line; development gets short colored
lines. Either way every record is tagged with the game, seat, and client
it belongs to, taken from the record's extra fields (set by ContextLogger)
or, failing that, from the context variables below.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

game_id_var: ContextVar[Optional[str]] = ContextVar("game_id", default=None)
seat_id_var: ContextVar[Optional[int]] = ContextVar("seat_id", default=None)
client_tag_var: ContextVar[Optional[str]] = ContextVar("client_tag", default=None)

CONTEXT_FIELDS = (
    ("game_id", game_id_var),
    ("seat_id", seat_id_var),
    ("client_tag", client_tag_var),
)

# Libraries that log too much at INFO
QUIET_LOGGERS = ("redis", "asyncio")


def record_context(record: logging.LogRecord) -> dict:
    """
    Collect game/seat/client tags for a record.

    Extra fields on the record win over context variables. Seat 0 is a
    real seat, so only None counts as missing.
    """
    context = {}
    for name, var in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is None:
            value = var.get()
        if value is not None and value != "":
            context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }

        if record.levelno >= logging.ERROR:
            entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Colored single-line output for local play.

    Example:
        12:04:31.220 INFO     game_service [game=AB12CD seat=2] - Game started
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    SHORT_NAMES = {"game_id": "game", "seat_id": "seat", "client_tag": "client"}

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "") if self.use_color else ""
        reset = self.RESET if color else ""
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        tags = []
        for name, value in record_context(record).items():
            if name == "client_tag":
                value = str(value)[:8]
            tags.append(f"{self.SHORT_NAMES[name]}={value}")
        context = f" [{' '.join(tags)}]" if tags else ""

        line = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{context} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name; unknown names fall back to INFO.
        environment: "production" selects JSON output.
    """
    handler = logging.StreamHandler(sys.stdout)
    if environment == "production":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter(use_color=sys.stdout.isatty()))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that stamps bound context onto every record.

    Usage:
        log = get_logger(__name__).with_context(game_id="AB12CD", seat_id=2)
        log.info("Kept card")
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        """Return a new adapter with kwargs added to the bound context."""
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger (name is typically __name__)."""
    return ContextLogger(logging.getLogger(name))
