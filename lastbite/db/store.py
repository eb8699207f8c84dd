"""Shared connection, transactions and error mapping for the marketplace tables."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..errors import Conflict, StoreUnavailable
from .schema import ensure_schema

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "~/.config/lastbite/market.db"


class MarketStore:
    """Owns the SQLite connection used by every table accessor.

    One store serves one caller at a time; concurrent clients each open
    their own store against the same database file and coordinate through
    SQLite's locking.
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH, timeout: float = 5.0) -> None:
        from .listings import ListingDB
        from .matches import MatchDB
        from .messages import MessageDB
        from .users import UserDB

        self._db_path = db_path
        self._timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._tx_depth = 0

        self.listings = ListingDB(self)
        self.matches = MatchDB(self)
        self.messages = MessageDB(self)
        self.users = UserDB(self)

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = ensure_schema(self._db_path, timeout=self._timeout)
            except sqlite3.DatabaseError as exc:
                logger.exception("Could not open database %s", self._db_path)
                raise StoreUnavailable(f"database unavailable: {exc}") from exc
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> MarketStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def execute(self, sql: str, params: tuple | dict = ()) -> sqlite3.Cursor:
        """Run a statement, translating sqlite failures into store errors."""
        conn = self._get_conn()
        try:
            return conn.execute(sql, params)
        except sqlite3.IntegrityError as exc:
            raise Conflict(f"constraint violated: {exc}") from exc
        except sqlite3.DatabaseError as exc:
            logger.exception("Statement failed: %s", sql.split("\n", 1)[0])
            raise StoreUnavailable(f"database unavailable: {exc}") from exc

    def fetchone(self, sql: str, params: tuple | dict = ()) -> dict | None:
        row = self.execute(sql, params).fetchone()
        return dict(row) if row is not None else None

    def fetchall(self, sql: str, params: tuple | dict = ()) -> list[dict]:
        return [dict(r) for r in self.execute(sql, params).fetchall()]

    def commit(self) -> None:
        """Commit, unless an enclosing transaction() will do it."""
        if self._tx_depth:
            return
        self._commit()

    def _commit(self) -> None:
        try:
            self._get_conn().commit()
        except sqlite3.DatabaseError as exc:
            logger.exception("Commit failed")
            raise StoreUnavailable(f"database unavailable: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[MarketStore]:
        """Run the enclosed statements as one write transaction.

        ``BEGIN IMMEDIATE`` takes the write lock up front, so reads made
        inside the block cannot be invalidated by another writer before the
        block commits. Any exception rolls every statement back.
        """
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield self
            finally:
                self._tx_depth -= 1
            return

        conn = self._get_conn()
        if conn.in_transaction:
            self._commit()
        self.execute("BEGIN IMMEDIATE")
        self._tx_depth = 1
        try:
            yield self
            self._commit()
        except BaseException:
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            self._tx_depth = 0
