# ScoopSocials Auth Core Module
from .cache import CacheStore, create_redis_client
from .config import Settings, get_settings, settings
from .database import (
    Base,
    check_db_connection,
    create_engine,
    create_session_maker,
    get_db,
)
from .logging import get_logger, log_auth_event, log_security_event, setup_logging

__all__ = [
    "settings",
    "Settings",
    "get_settings",
    "setup_logging",
    "get_logger",
    "log_auth_event",
    "log_security_event",
    "Base",
    "create_engine",
    "create_session_maker",
    "get_db",
    "check_db_connection",
    "CacheStore",
    "create_redis_client",
]
