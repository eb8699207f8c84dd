"""Distance calculation and nearby-listing filtering.

Everything here is a pure function over its inputs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from .models import Category, FoodListing, GeoLocation, coerce_enum

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 5.0


@dataclass(frozen=True)
class RankedListing:
    """A listing annotated with its distance from the user (km, or None)."""

    listing: FoodListing
    distance_km: float | None = None

    @property
    def distance_label(self) -> str | None:
        if self.distance_km is None:
            return None
        return format_distance(self.distance_km)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres, rounded to one decimal place."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 1)


def format_distance(distance_km: float) -> str:
    """Render a distance as ``"850 m"`` below one kilometre, else ``"2.4 km"``."""
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    return f"{distance_km:.1f} km"


def distance_to(listing: FoodListing, user_location: GeoLocation) -> float | None:
    """Distance from the user to a listing, or None if either side lacks coordinates."""
    loc = listing.location
    if loc is None or not loc.has_coordinates or not user_location.has_coordinates:
        return None
    return haversine_km(
        float(user_location.lat),
        float(user_location.lng),
        float(loc.lat),
        float(loc.lng),
    )


def filter_by_distance(
    listings: Iterable[FoodListing],
    user_location: GeoLocation | None,
    radius_km: float = DEFAULT_RADIUS_KM,
) -> list[RankedListing]:
    """Drop listings beyond ``radius_km`` and order the rest nearest-first.

    Without a user location the listings come back in their original order,
    each with ``distance_km=None``. Listings lacking coordinates are kept and
    placed after every listing with a known distance.
    """
    listings = list(listings)
    if user_location is None or not user_location.has_coordinates:
        return [RankedListing(listing) for listing in listings]

    known: list[RankedListing] = []
    unknown: list[RankedListing] = []
    for listing in listings:
        distance = distance_to(listing, user_location)
        if distance is None:
            unknown.append(RankedListing(listing))
        elif distance <= radius_km:
            known.append(RankedListing(listing, distance))

    # sorted() is stable, so ties keep their input order
    known = sorted(known, key=lambda r: r.distance_km)
    return known + unknown


def search_listings(
    ranked: Iterable[RankedListing],
    query: str | None = None,
    category: Category | str | None = None,
) -> list[RankedListing]:
    """Narrow ranked listings by free-text query and/or category."""
    result = list(ranked)
    if category not in (None, "", "All"):
        wanted = coerce_enum(Category, category, "category")
        result = [r for r in result if r.listing.category is wanted]
    if query:
        needle = query.strip().lower()
        result = [
            r for r in result
            if needle in r.listing.title.lower()
            or needle in (r.listing.description or "").lower()
        ]
    return result
