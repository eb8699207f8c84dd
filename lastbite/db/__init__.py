"""SQLite persistence for listings, match requests, chat and users."""

from .listings import ListingDB
from .matches import MatchDB
from .messages import MessageDB
from .schema import ensure_schema
from .store import DEFAULT_DB_PATH, MarketStore
from .users import UserDB

__all__ = [
    "DEFAULT_DB_PATH",
    "ListingDB",
    "MarketStore",
    "MatchDB",
    "MessageDB",
    "UserDB",
    "ensure_schema",
]
