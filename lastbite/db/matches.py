"""Match request persistence."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..models import FoodListing, MatchRequest, MatchStatus
from .schema import NOW_SQL

if TYPE_CHECKING:
    from .store import MarketStore


class MatchDB:
    """Manages the match_requests table."""

    def __init__(self, store: MarketStore) -> None:
        self._store = store

    def insert(
        self, listing: FoodListing, seeker_id: str, seeker_display_name: str
    ) -> MatchRequest:
        """Create an 'interested' request, snapshotting the listing's title and image."""
        match_id = self._store.new_id()
        self._store.execute(
            """INSERT INTO match_requests
               (id, listing_id, listing_title, listing_image_ref,
                giver_id, giver_display_name, seeker_id, seeker_display_name, status)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'interested')""",
            (
                match_id,
                listing.id,
                listing.title,
                listing.image_ref,
                listing.creator_id,
                listing.creator_display_name,
                seeker_id,
                seeker_display_name,
            ),
        )
        self._store.commit()
        return self.get(match_id)

    def get(self, match_id: str) -> MatchRequest | None:
        row = self._store.fetchone(
            "SELECT * FROM match_requests WHERE id = ?", (match_id,)
        )
        return MatchRequest.from_row(row) if row else None

    def _select(self, where: str, params: tuple, status: MatchStatus | None) -> list[MatchRequest]:
        if status is not None:
            where += " AND status = ?"
            params = params + (status.value,)
        rows = self._store.fetchall(
            f"""SELECT * FROM match_requests
               WHERE {where}
               ORDER BY created_at DESC, rowid DESC""",
            params,
        )
        return [MatchRequest.from_row(r) for r in rows]

    def find_for(self, listing_id: str, seeker_id: str) -> list[MatchRequest]:
        """All requests a seeker has made on one listing, newest first."""
        return self._select("listing_id = ? AND seeker_id = ?", (listing_id, seeker_id), None)

    def list_for_listing(
        self, listing_id: str, status: MatchStatus | None = None
    ) -> list[MatchRequest]:
        return self._select("listing_id = ?", (listing_id,), status)

    def list_for_giver(
        self, giver_id: str, status: MatchStatus | None = None
    ) -> list[MatchRequest]:
        return self._select("giver_id = ?", (giver_id,), status)

    def list_for_seeker(
        self, seeker_id: str, status: MatchStatus | None = None
    ) -> list[MatchRequest]:
        return self._select("seeker_id = ?", (seeker_id,), status)

    def list_for_user(
        self, user_id: str, status: MatchStatus | None = None
    ) -> list[MatchRequest]:
        """Requests where the user is either the giver or the seeker."""
        return self._select("(giver_id = ? OR seeker_id = ?)", (user_id, user_id), status)

    def update_status_if(
        self, match_id: str, expected: MatchStatus, new_status: MatchStatus
    ) -> bool:
        """Compare-and-set the request status. Returns True if updated."""
        cur = self._store.execute(
            f"""UPDATE match_requests
               SET status = ?, updated_at = {NOW_SQL}
               WHERE id = ? AND status = ?""",
            (new_status.value, match_id, expected.value),
        )
        self._store.commit()
        return cur.rowcount == 1

    def complete_approved(self, listing_id: str, seeker_id: str) -> int:
        """Mark the seeker's approved request on a listing as completed.

        Returns:
            Number of rows updated.
        """
        cur = self._store.execute(
            f"""UPDATE match_requests
               SET status = 'completed', updated_at = {NOW_SQL}
               WHERE listing_id = ? AND seeker_id = ? AND status = 'approved'""",
            (listing_id, seeker_id),
        )
        self._store.commit()
        return cur.rowcount

    def list_active_for_user(self, user_id: str) -> list[MatchRequest]:
        """Approved requests whose listing is still reserved for their seeker."""
        rows = self._store.fetchall(
            """SELECT m.* FROM match_requests m
               JOIN food_listings l
                 ON l.id = m.listing_id
                AND l.status = 'reserved'
                AND l.reserved_by = m.seeker_id
               WHERE m.status = 'approved'
                 AND (m.giver_id = ? OR m.seeker_id = ?)
               ORDER BY m.created_at DESC, m.rowid DESC""",
            (user_id, user_id),
        )
        return [MatchRequest.from_row(r) for r in rows]

    def reject_open(self, listing_id: str) -> int:
        """Reject every request still 'interested' in a listing.

        Returns:
            Number of rows updated.
        """
        cur = self._store.execute(
            f"""UPDATE match_requests
               SET status = 'rejected', updated_at = {NOW_SQL}
               WHERE listing_id = ? AND status = 'interested'""",
            (listing_id,),
        )
        self._store.commit()
        return cur.rowcount
