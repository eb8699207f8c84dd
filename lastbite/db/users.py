"""User profiles: anonymous usernames and trial windows."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..fees import DEFAULT_TRIAL_DAYS, trial_window
from ..models import UserProfile
from ..usernames import generate_unique_username

if TYPE_CHECKING:
    from .store import MarketStore

logger = logging.getLogger(__name__)


class UserDB:
    """Manages the users table."""

    def __init__(self, store: MarketStore) -> None:
        self._store = store

    def get(self, user_id: str) -> UserProfile | None:
        row = self._store.fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return UserProfile.from_row(row) if row else None

    def is_username_available(self, username: str) -> bool:
        row = self._store.fetchone(
            "SELECT 1 AS taken FROM users WHERE username = ?", (username,)
        )
        return row is None

    def register(
        self,
        user_id: str,
        display_name: str = "",
        *,
        trial_days: int = DEFAULT_TRIAL_DAYS,
        now: datetime | None = None,
    ) -> UserProfile:
        """Create a profile with a fresh username and an open trial.

        Registering an existing user returns the stored profile unchanged.
        """
        existing = self.get(user_id)
        if existing is not None:
            return existing

        start, end = trial_window(now or datetime.now(timezone.utc), trial_days)
        username = generate_unique_username(self.is_username_available)
        self._store.execute(
            """INSERT INTO users (id, username, display_name, trial_start, trial_end)
               VALUES (?, ?, ?, ?, ?)""",
            (user_id, username, display_name or username, start.isoformat(), end.isoformat()),
        )
        self._store.commit()
        logger.info("Registered user %s as %s", user_id, username)
        return self.get(user_id)
