"""Database schema definitions and migration helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path

_SCHEMA_VERSION = 1

NOW_SQL = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

_DDL = f"""
CREATE TABLE IF NOT EXISTS food_listings (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    price_cents INTEGER NOT NULL CHECK (price_cents >= 0),
    original_price_cents INTEGER
        CHECK (original_price_cents IS NULL OR original_price_cents > price_cents),
    category TEXT NOT NULL,
    storage_condition TEXT NOT NULL
        CHECK (storage_condition IN ('pantry', 'refrigerated', 'frozen')),
    package_status TEXT NOT NULL CHECK (package_status IN ('sealed', 'opened')),
    expiry_label TEXT NOT NULL DEFAULT '',
    lat REAL,
    lng REAL,
    address TEXT,
    city TEXT,
    district TEXT,
    image_ref TEXT NOT NULL DEFAULT '',
    creator_id TEXT NOT NULL,
    creator_display_name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'available'
        CHECK (status IN ('available', 'reserved', 'completed')),
    reserved_by TEXT,
    reserved_by_display_name TEXT,
    created_at TEXT NOT NULL DEFAULT {NOW_SQL},
    updated_at TEXT NOT NULL DEFAULT {NOW_SQL},
    CHECK ((status = 'available') = (reserved_by IS NULL))
);

CREATE INDEX IF NOT EXISTS idx_listings_status ON food_listings(status, created_at);
CREATE INDEX IF NOT EXISTS idx_listings_creator ON food_listings(creator_id);
CREATE INDEX IF NOT EXISTS idx_listings_reserved_by ON food_listings(reserved_by);

CREATE TABLE IF NOT EXISTS match_requests (
    id TEXT PRIMARY KEY,
    listing_id TEXT NOT NULL,
    listing_title TEXT NOT NULL DEFAULT '',
    listing_image_ref TEXT NOT NULL DEFAULT '',
    giver_id TEXT NOT NULL,
    giver_display_name TEXT NOT NULL,
    seeker_id TEXT NOT NULL,
    seeker_display_name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'interested'
        CHECK (status IN ('interested', 'approved', 'rejected', 'completed')),
    created_at TEXT NOT NULL DEFAULT {NOW_SQL},
    updated_at TEXT NOT NULL DEFAULT {NOW_SQL}
);

CREATE INDEX IF NOT EXISTS idx_matches_listing ON match_requests(listing_id, seeker_id);
CREATE INDEX IF NOT EXISTS idx_matches_giver ON match_requests(giver_id, status);
CREATE INDEX IF NOT EXISTS idx_matches_seeker ON match_requests(seeker_id, status);

CREATE TABLE IF NOT EXISTS chat_messages (
    id TEXT PRIMARY KEY,
    match_id TEXT NOT NULL REFERENCES match_requests(id),
    sender_id TEXT NOT NULL,
    sender_display_name TEXT NOT NULL,
    text TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT {NOW_SQL}
);

CREATE INDEX IF NOT EXISTS idx_messages_match ON chat_messages(match_id, created_at);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL DEFAULT '',
    trial_start TEXT,
    trial_end TEXT,
    created_at TEXT NOT NULL DEFAULT {NOW_SQL}
);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);
"""


def ensure_schema(db_path: str | Path, timeout: float = 5.0) -> sqlite3.Connection:
    """Open (or create) the database and ensure the schema is up to date.

    Args:
        db_path: Path to the SQLite database file.
        timeout: Seconds to wait for another writer's lock.

    Returns:
        An open sqlite3.Connection with the schema applied.
    """
    db_path = Path(db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    # Check current schema version
    try:
        row = conn.execute("SELECT version FROM schema_version").fetchone()
        current_version = row["version"] if row else 0
    except sqlite3.OperationalError:
        current_version = 0

    if current_version < _SCHEMA_VERSION:
        conn.executescript(_DDL)
        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (_SCHEMA_VERSION,),
        )
        conn.commit()

    return conn
