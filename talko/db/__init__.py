"""Database package: SQL engine and sessions, plus the Redis pool behind the usage ledger."""

from talko.db.base import Base, close_db, get_db_session, get_session_factory, init_db, ping_database, session_scope
from talko.db.redis import close_redis, get_redis, get_usage_ledger, init_redis

__all__ = [
    "Base",
    "close_db",
    "close_redis",
    "get_db_session",
    "get_redis",
    "get_session_factory",
    "get_usage_ledger",
    "init_db",
    "init_redis",
    "ping_database",
    "session_scope",
]
