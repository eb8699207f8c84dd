"""Food listing CRUD operations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import ValidationError
from ..models import FoodListing, ListingDraft, ListingStatus, money_to_cents
from .schema import NOW_SQL

if TYPE_CHECKING:
    from .store import MarketStore

logger = logging.getLogger(__name__)


def _content_params(draft: ListingDraft) -> dict:
    loc = draft.location
    return {
        "title": draft.title,
        "description": draft.description,
        "price_cents": money_to_cents(draft.price),
        "original_price_cents": (
            money_to_cents(draft.original_price)
            if draft.original_price is not None else None
        ),
        "category": draft.category.value,
        "storage_condition": draft.storage_condition.value,
        "package_status": draft.package_status.value,
        "expiry_label": draft.expiry_label,
        "lat": loc.lat if loc else None,
        "lng": loc.lng if loc else None,
        "address": loc.address if loc else None,
        "city": loc.city if loc else None,
        "district": loc.district if loc else None,
        "image_ref": draft.image_ref,
    }


class ListingDB:
    """Manages the food_listings table."""

    def __init__(self, store: MarketStore) -> None:
        self._store = store

    def insert(
        self, draft: ListingDraft, creator_id: str, creator_display_name: str
    ) -> FoodListing:
        """Store a new listing with status 'available'.

        The id and timestamps are assigned here.
        """
        draft = draft.validated()
        params = _content_params(draft)
        params.update(
            id=self._store.new_id(),
            creator_id=creator_id,
            creator_display_name=creator_display_name,
        )
        self._store.execute(
            """INSERT INTO food_listings
               (id, title, description, price_cents, original_price_cents,
                category, storage_condition, package_status, expiry_label,
                lat, lng, address, city, district, image_ref,
                creator_id, creator_display_name, status)
               VALUES (:id, :title, :description, :price_cents, :original_price_cents,
                       :category, :storage_condition, :package_status, :expiry_label,
                       :lat, :lng, :address, :city, :district, :image_ref,
                       :creator_id, :creator_display_name, 'available')""",
            params,
        )
        self._store.commit()
        return self.get(params["id"])

    def get(self, listing_id: str) -> FoodListing | None:
        row = self._store.fetchone(
            "SELECT * FROM food_listings WHERE id = ?", (listing_id,)
        )
        return FoodListing.from_row(row) if row else None

    def list_available(self) -> list[FoodListing]:
        """Return all listings with status='available', newest first."""
        rows = self._store.fetchall(
            """SELECT * FROM food_listings
               WHERE status = 'available'
               ORDER BY created_at DESC, rowid DESC"""
        )
        return [FoodListing.from_row(r) for r in rows]

    def list_by_creator(self, user_id: str) -> list[FoodListing]:
        rows = self._store.fetchall(
            """SELECT * FROM food_listings
               WHERE creator_id = ?
               ORDER BY created_at DESC, rowid DESC""",
            (user_id,),
        )
        return [FoodListing.from_row(r) for r in rows]

    def list_reserved_by(self, user_id: str) -> list[FoodListing]:
        """Return listings reserved for (or already picked up by) a user."""
        rows = self._store.fetchall(
            """SELECT * FROM food_listings
               WHERE reserved_by = ?
                 AND status IN ('reserved', 'completed')
               ORDER BY created_at DESC, rowid DESC""",
            (user_id,),
        )
        return [FoodListing.from_row(r) for r in rows]

    def update_status_if(
        self,
        listing_id: str,
        expected: ListingStatus,
        new_status: ListingStatus,
        *,
        reserved_by: str | None = None,
        reserved_by_display_name: str | None = None,
        expected_reserved_by: str | None = None,
    ) -> bool:
        """Compare-and-set the listing status.

        The row is only written if its status still equals ``expected`` (and,
        when given, its holder equals ``expected_reserved_by``). Moving to
        'available' clears the holder, moving to 'reserved' requires one, and
        moving to 'completed' keeps the current holder.

        Returns:
            True if the row was updated.
        """
        sets = ["status = :new_status", f"updated_at = {NOW_SQL}"]
        params: dict = {
            "id": listing_id,
            "expected": expected.value,
            "new_status": new_status.value,
        }
        if new_status is ListingStatus.AVAILABLE:
            sets += ["reserved_by = NULL", "reserved_by_display_name = NULL"]
        elif new_status is ListingStatus.RESERVED:
            if not reserved_by:
                raise ValidationError("reserving a listing requires reserved_by")
            sets += ["reserved_by = :reserved_by", "reserved_by_display_name = :reserved_name"]
            params["reserved_by"] = reserved_by
            params["reserved_name"] = reserved_by_display_name or "Anonymous"

        where = "id = :id AND status = :expected"
        if expected_reserved_by is not None:
            where += " AND reserved_by = :expected_holder"
            params["expected_holder"] = expected_reserved_by

        cur = self._store.execute(
            f"UPDATE food_listings SET {', '.join(sets)} WHERE {where}", params
        )
        self._store.commit()
        updated = cur.rowcount == 1
        logger.debug(
            "listing %s %s -> %s: %s",
            listing_id, expected.value, new_status.value,
            "applied" if updated else "precondition failed",
        )
        return updated

    def update_content(self, listing_id: str, draft: ListingDraft) -> bool:
        """Replace the content fields of a listing that is not completed.

        Returns:
            True if the row was updated.
        """
        params = _content_params(draft.validated())
        params["id"] = listing_id
        cur = self._store.execute(
            f"""UPDATE food_listings
               SET title = :title, description = :description,
                   price_cents = :price_cents,
                   original_price_cents = :original_price_cents,
                   category = :category, storage_condition = :storage_condition,
                   package_status = :package_status, expiry_label = :expiry_label,
                   lat = :lat, lng = :lng, address = :address, city = :city,
                   district = :district, image_ref = :image_ref,
                   updated_at = {NOW_SQL}
               WHERE id = :id AND status != 'completed'""",
            params,
        )
        self._store.commit()
        return cur.rowcount == 1

    def delete_if_available(self, listing_id: str) -> bool:
        """Delete a listing only while its status is 'available'."""
        cur = self._store.execute(
            "DELETE FROM food_listings WHERE id = ? AND status = 'available'",
            (listing_id,),
        )
        self._store.commit()
        return cur.rowcount == 1
