"""ScoopSocials Auth Logging Configuration."""

import json
import logging
import sys
from typing import Any, Literal

# Human-readable format for development
DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s%(meta_suffix)s"

# Attribute used to carry structured metadata on log records
META_ATTR = "meta"


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Escapes every field through json.dumps() and merges the structured
    metadata attached by log_security_event()/log_auth_event().
    """

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        meta = getattr(record, META_ATTR, None)
        if meta:
            log_entry["meta"] = meta
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Readable formatter that appends structured metadata as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        meta = getattr(record, META_ATTR, None)
        record.meta_suffix = f" {json.dumps(meta, default=str)}" if meta else ""
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format - 'structured' for JSON, 'dev' for readable
    """
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevFormatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logging.root.handlers = [handler]
    logging.root.setLevel(getattr(logging, level.upper()))

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    # Keep SQLAlchemy quiet unless debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    )

    logger = logging.getLogger("scoopauth")
    logger.info(f"Logging configured: level={level}, format={format_type}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the scoopauth prefix."""
    return logging.getLogger(f"scoopauth.{name}")


_security_logger = get_logger("security")
_auth_logger = get_logger("auth")


def log_security_event(event: str, **metadata: Any) -> None:
    """Log a security-relevant event at WARNING level."""
    _security_logger.warning(
        f"Security Event: {event}",
        extra={META_ATTR: {**metadata, "type": "security"}},
    )


def log_auth_event(event: str, **metadata: Any) -> None:
    """Log an authentication lifecycle event at INFO level."""
    _auth_logger.info(
        f"Auth Event: {event}",
        extra={META_ATTR: {**metadata, "type": "auth"}},
    )
