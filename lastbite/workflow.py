"""Listing lifecycle and the request/approval/pickup workflow.

Two linked state machines live here::

    listing:  available -> reserved -> completed
                  ^            |
                  +-- cancel --+

    request:  interested -> approved -> completed
                   |
                   +-> rejected

A seeker's request leaves the listing available, so several seekers can
queue up. The giver's approval is the single point that turns interest into
an exclusive hold, and it is applied as a conditional update on the
listing's status inside one store transaction: of any number of concurrent
approvals for the same listing, at most one succeeds and the rest raise
Conflict without touching either row.

Retrying a transition that already took effect returns the current entity
instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from .db.store import MarketStore
from .errors import Conflict, InvalidOperation, NotFound, ValidationError
from .fees import FeeBreakdown, FeePolicy, SubscriptionStatus, subscription_status
from .images import ImageStore, image_filename
from .models import (
    EDITABLE_FIELDS,
    MESSAGE_MAX,
    Actor,
    Category,
    ChatMessage,
    FoodListing,
    GeoLocation,
    ListingDraft,
    ListingStatus,
    MatchRequest,
    MatchStatus,
    UserProfile,
)
from .proximity import DEFAULT_RADIUS_KM, RankedListing, filter_by_distance, search_listings

logger = logging.getLogger(__name__)


class MatchWorkflow:
    """Entry point for every marketplace operation.

    Each call takes the acting user explicitly; nothing is read from
    ambient session state.
    """

    def __init__(
        self,
        store: MarketStore,
        image_store: ImageStore | None = None,
        fee_policy: FeePolicy | None = None,
        *,
        radius_km: float = DEFAULT_RADIUS_KM,
        require_location: bool = True,
    ) -> None:
        self._store = store
        self._images = image_store
        self._fees = fee_policy or FeePolicy()
        self._radius_km = radius_km
        self._require_location = require_location

    @property
    def fee_policy(self) -> FeePolicy:
        return self._fees

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_listing(self, listing_id: str) -> FoodListing:
        listing = self._store.listings.get(listing_id)
        if listing is None:
            raise NotFound(f"listing {listing_id} not found")
        return listing

    def get_request(self, request_id: str) -> MatchRequest:
        match = self._store.matches.get(request_id)
        if match is None:
            raise NotFound(f"request {request_id} not found")
        return match

    # ------------------------------------------------------------------
    # Listing lifecycle (giver)
    # ------------------------------------------------------------------

    def _check_pickup_details(self, draft: ListingDraft, image_pending: bool = False) -> None:
        if self._require_location and (
            draft.location is None or not draft.location.has_coordinates
        ):
            raise ValidationError("a pickup location with coordinates is required")
        if not (draft.image_ref or image_pending):
            raise ValidationError("a photo of the food is required")

    def post_listing(
        self,
        actor: Actor,
        draft: ListingDraft,
        image: bytes | None = None,
        image_suffix: str = ".jpg",
    ) -> FoodListing:
        """Validate a draft, upload its photo and store it as available."""
        draft = draft.validated()
        if image is not None and not image:
            raise ValidationError("image data is empty")
        self._check_pickup_details(draft, image_pending=image is not None)

        if image is not None:
            if self._images is None:
                raise InvalidOperation("no image store is configured")
            ref = self._images.upload(
                image, image_filename(actor.id, image_suffix), owner_id=actor.id
            )
            draft = replace(draft, image_ref=ref)

        listing = self._store.listings.insert(draft, actor.id, actor.display_name)
        logger.info("User %s posted listing %s (%s)", actor.id, listing.id, listing.title)
        return listing

    def update_listing(self, actor: Actor, listing_id: str, **changes) -> FoodListing:
        """Edit content fields of one's own listing; completed listings are frozen."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"fields cannot be edited: {', '.join(sorted(unknown))}")

        listing = self.get_listing(listing_id)
        if listing.creator_id != actor.id:
            raise InvalidOperation("only the giver can edit a listing")
        if listing.status is ListingStatus.COMPLETED:
            raise InvalidOperation("a completed listing cannot be edited")

        draft = replace(listing.draft(), **changes).validated()
        self._check_pickup_details(draft)
        if not self._store.listings.update_content(listing_id, draft):
            if self._store.listings.get(listing_id) is None:
                raise NotFound(f"listing {listing_id} not found")
            raise Conflict("the listing was completed while being edited")
        return self.get_listing(listing_id)

    def delete_listing(self, actor: Actor, listing_id: str) -> None:
        """Remove one's own listing while it is still available.

        Requests still waiting on the listing are rejected with it.
        """
        with self._store.transaction():
            listing = self.get_listing(listing_id)
            if listing.creator_id != actor.id:
                raise InvalidOperation("only the giver can delete a listing")
            if listing.status is not ListingStatus.AVAILABLE:
                raise InvalidOperation("only available listings can be deleted")

            if not self._store.listings.delete_if_available(listing_id):
                if self._store.listings.get(listing_id) is None:
                    raise NotFound(f"listing {listing_id} not found")
                logger.warning("Delete of listing %s lost a race", listing_id)
                raise Conflict("the listing was reserved before it could be deleted")
            closed = self._store.matches.reject_open(listing_id)
        logger.info(
            "User %s deleted listing %s (%d open request(s) rejected)",
            actor.id, listing_id, closed,
        )

    # ------------------------------------------------------------------
    # Request / approval
    # ------------------------------------------------------------------

    def _live_request(self, listing: FoodListing, seeker_id: str) -> MatchRequest | None:
        """The seeker's request that still counts, if any.

        Rejected requests never count. An approved request only counts while
        its reservation stands; once cancelled it is abandoned.
        """
        for match in self._store.matches.find_for(listing.id, seeker_id):
            if match.status is MatchStatus.INTERESTED:
                return match
            if match.status is MatchStatus.COMPLETED:
                return match
            if (
                match.status is MatchStatus.APPROVED
                and listing.status is not ListingStatus.AVAILABLE
                and listing.reserved_by == seeker_id
            ):
                return match
        return None

    def request_listing(self, actor: Actor, listing_id: str) -> MatchRequest:
        """Express interest in someone else's available listing."""
        with self._store.transaction():
            listing = self.get_listing(listing_id)
            if listing.creator_id == actor.id:
                raise InvalidOperation("you cannot request your own listing")

            existing = self._live_request(listing, actor.id)
            if existing is not None:
                return existing

            if listing.status is not ListingStatus.AVAILABLE:
                raise InvalidOperation("this listing is no longer available")

            match = self._store.matches.insert(listing, actor.id, actor.display_name)
        logger.info("User %s requested listing %s (request %s)", actor.id, listing_id, match.id)
        return match

    def approve_request(self, actor: Actor, request_id: str) -> MatchRequest:
        """Reserve the listing for the requesting seeker.

        Raises:
            Conflict: The listing is no longer available.
        """
        with self._store.transaction():
            match = self.get_request(request_id)
            if match.giver_id != actor.id:
                raise InvalidOperation("only the giver can approve a request")
            listing = self.get_listing(match.listing_id)

            if (
                match.status is MatchStatus.APPROVED
                and listing.status is ListingStatus.RESERVED
                and listing.reserved_by == match.seeker_id
            ):
                return match
            if match.status is not MatchStatus.INTERESTED:
                raise InvalidOperation(f"request is {match.status.value}, not interested")

            reserved = self._store.listings.update_status_if(
                listing.id,
                ListingStatus.AVAILABLE,
                ListingStatus.RESERVED,
                reserved_by=match.seeker_id,
                reserved_by_display_name=match.seeker_display_name,
            )
            if not reserved:
                logger.warning(
                    "Approval of request %s conflicted: listing %s is %s",
                    request_id, listing.id, listing.status.value,
                )
                raise Conflict("this listing is already reserved by someone else")
            if not self._store.matches.update_status_if(
                request_id, MatchStatus.INTERESTED, MatchStatus.APPROVED
            ):
                raise Conflict("the request changed while being approved")

        logger.info(
            "Listing %s reserved for %s (request %s)",
            match.listing_id, match.seeker_id, request_id,
        )
        return self.get_request(request_id)

    def reject_request(self, actor: Actor, request_id: str) -> MatchRequest:
        match = self.get_request(request_id)
        if match.giver_id != actor.id:
            raise InvalidOperation("only the giver can reject a request")
        if match.status is MatchStatus.REJECTED:
            return match
        if match.status is not MatchStatus.INTERESTED:
            raise InvalidOperation(f"request is {match.status.value}, not interested")

        if not self._store.matches.update_status_if(
            request_id, MatchStatus.INTERESTED, MatchStatus.REJECTED
        ):
            current = self.get_request(request_id)
            if current.status is MatchStatus.REJECTED:
                return current
            raise Conflict(f"request is now {current.status.value}")
        logger.info("Request %s rejected by %s", request_id, actor.id)
        return self.get_request(request_id)

    # ------------------------------------------------------------------
    # Pickup / cancellation
    # ------------------------------------------------------------------

    def complete_pickup(self, actor: Actor, listing_id: str) -> FoodListing:
        """Mark a reserved listing as picked up (giver or reserving seeker)."""
        with self._store.transaction():
            listing = self.get_listing(listing_id)
            if actor.id not in (listing.creator_id, listing.reserved_by):
                raise InvalidOperation("only the giver or the reserving seeker can confirm pickup")
            if listing.status is ListingStatus.COMPLETED:
                return listing
            if listing.status is not ListingStatus.RESERVED:
                raise InvalidOperation("this listing is not reserved")

            if not self._store.listings.update_status_if(
                listing_id,
                ListingStatus.RESERVED,
                ListingStatus.COMPLETED,
                expected_reserved_by=listing.reserved_by,
            ):
                raise Conflict("the reservation changed before pickup was confirmed")
            self._store.matches.complete_approved(listing_id, listing.reserved_by)

        logger.info("Listing %s picked up by %s", listing_id, listing.reserved_by)
        return self.get_listing(listing_id)

    def cancel_reservation(self, actor: Actor, listing_id: str) -> FoodListing:
        """Release a reservation so the listing is available again."""
        with self._store.transaction():
            listing = self.get_listing(listing_id)
            if listing.status is ListingStatus.COMPLETED:
                raise InvalidOperation("this pickup is already completed")

            if listing.status is ListingStatus.AVAILABLE:
                if actor.id == listing.creator_id or any(
                    m.status is MatchStatus.APPROVED
                    for m in self._store.matches.find_for(listing_id, actor.id)
                ):
                    return listing
                raise InvalidOperation("this listing is not reserved")

            if actor.id not in (listing.creator_id, listing.reserved_by):
                raise InvalidOperation("only the giver or the reserving seeker can cancel")

            if not self._store.listings.update_status_if(
                listing_id,
                ListingStatus.RESERVED,
                ListingStatus.AVAILABLE,
                expected_reserved_by=listing.reserved_by,
            ):
                raise Conflict("the reservation changed before it could be cancelled")

        logger.info("Reservation on listing %s cancelled by %s", listing_id, actor.id)
        return self.get_listing(listing_id)

    # ------------------------------------------------------------------
    # Discovery and dashboards
    # ------------------------------------------------------------------

    def discover(
        self,
        actor: Actor,
        user_location: GeoLocation | None = None,
        radius_km: float | None = None,
        query: str | None = None,
        category: Category | str | None = None,
    ) -> list[RankedListing]:
        """Available listings from other users, nearest first when located."""
        listings = [
            listing for listing in self._store.listings.list_available()
            if listing.creator_id != actor.id
        ]
        ranked = filter_by_distance(
            listings, user_location, self._radius_km if radius_km is None else radius_km
        )
        return search_listings(ranked, query=query, category=category)

    def my_listings(self, actor: Actor) -> list[FoodListing]:
        return self._store.listings.list_by_creator(actor.id)

    def my_pickups(self, actor: Actor) -> list[FoodListing]:
        return self._store.listings.list_reserved_by(actor.id)

    def incoming_requests(self, actor: Actor) -> list[MatchRequest]:
        """Pending requests on the actor's listings."""
        return self._store.matches.list_for_giver(actor.id, MatchStatus.INTERESTED)

    def outgoing_requests(self, actor: Actor) -> list[MatchRequest]:
        """The actor's own requests still waiting for a decision."""
        return self._store.matches.list_for_seeker(actor.id, MatchStatus.INTERESTED)

    def request_status_for(self, actor: Actor, listing_id: str) -> MatchStatus | None:
        """Status of the actor's most recent request on a listing."""
        matches = self._store.matches.find_for(listing_id, actor.id)
        return matches[0].status if matches else None

    def active_chats(self, actor: Actor) -> list[MatchRequest]:
        """Approved matches whose reservation still stands, newest first."""
        return self._store.matches.list_active_for_user(actor.id)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def _chat_match(self, actor: Actor, match_id: str) -> MatchRequest:
        match = self.get_request(match_id)
        if not match.involves(actor.id):
            raise InvalidOperation("only the giver and the seeker can use this chat")
        if match.status is MatchStatus.REJECTED:
            raise InvalidOperation("this request was declined")
        return match

    def send_message(self, actor: Actor, match_id: str, text: str) -> ChatMessage:
        self._chat_match(actor, match_id)
        text = (text or "").strip()
        if not text:
            raise ValidationError("message is empty")
        if len(text) > MESSAGE_MAX:
            raise ValidationError(f"message must be at most {MESSAGE_MAX} characters")
        return self._store.messages.add(match_id, actor.id, actor.display_name, text)

    def list_messages(self, actor: Actor, match_id: str) -> list[ChatMessage]:
        self._chat_match(actor, match_id)
        return self._store.messages.list_for_match(match_id)

    # ------------------------------------------------------------------
    # Fees and accounts
    # ------------------------------------------------------------------

    def fee_breakdown(self, listing_id: str) -> FeeBreakdown:
        return self._fees.breakdown(self.get_listing(listing_id).price)

    def register(self, actor: Actor, now: datetime | None = None) -> UserProfile:
        display_name = "" if actor.display_name == "Anonymous" else actor.display_name
        return self._store.users.register(
            actor.id, display_name, trial_days=self._fees.trial_days, now=now
        )

    def subscription(self, actor: Actor, now: datetime | None = None) -> SubscriptionStatus:
        profile = self._store.users.get(actor.id)
        if profile is None:
            raise NotFound(f"user {actor.id} is not registered")
        return subscription_status(profile, now=now, trial_days=self._fees.trial_days)
