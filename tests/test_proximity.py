"""Tests for distance calculation and nearby filtering."""

from decimal import Decimal

import pytest

from lastbite.models import Category, FoodListing, GeoLocation, PackageStatus, StorageCondition
from lastbite.proximity import (
    RankedListing,
    filter_by_distance,
    format_distance,
    haversine_km,
    search_listings,
)

USER = GeoLocation(lat=48.1351, lng=11.5820)


def _listing(listing_id, lat=None, lng=None, title="Food", category=Category.OTHER):
    location = None if lat is None else GeoLocation(lat=lat, lng=lng)
    return FoodListing(
        id=listing_id,
        title=title,
        description=f"{title} to share",
        price=Decimal("0.00"),
        category=category,
        storage_condition=StorageCondition.PANTRY,
        package_status=PackageStatus.SEALED,
        creator_id="giver",
        location=location,
    )


def test_haversine_same_point_is_zero():
    assert haversine_km(48.1351, 11.5820, 48.1351, 11.5820) == 0.0


def test_haversine_rounds_to_one_decimal():
    # One degree of latitude along a meridian
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == 111.2


def test_same_location_is_included_first():
    here = _listing("here", 48.1351, 11.5820)
    farther = _listing("farther", 48.1351 + 0.018, 11.5820)
    ranked = filter_by_distance([farther, here], USER, 5.0)
    assert [r.listing.id for r in ranked] == ["here", "farther"]
    assert ranked[0].distance_km == 0.0


def test_listing_beyond_radius_is_dropped():
    near = _listing("near", 48.1351 + 0.018, 11.5820)
    far = _listing("far", 48.1351 + 0.072, 11.5820)
    ranked = filter_by_distance([far, near], USER, 5.0)
    assert [r.listing.id for r in ranked] == ["near"]
    assert ranked[0].distance_km == 2.0


def test_radius_boundary_is_inclusive():
    at_edge = _listing("edge", 48.1351 + 0.045, 11.5820)
    past_edge = _listing("past", 48.1351 + 0.0455, 11.5820)
    ranked = filter_by_distance([at_edge, past_edge], USER, 5.0)
    assert [r.listing.id for r in ranked] == ["edge"]
    assert ranked[0].distance_km == 5.0


def test_listings_without_coordinates_come_last():
    unknown = _listing("unknown")
    near = _listing("near", 48.1351 + 0.018, 11.5820)
    ranked = filter_by_distance([unknown, near], USER, 5.0)
    assert [r.listing.id for r in ranked] == ["near", "unknown"]
    assert ranked[1].distance_km is None


def test_equal_distances_keep_input_order():
    a = _listing("a", 48.1351 + 0.018, 11.5820)
    b = _listing("b", 48.1351 - 0.018, 11.5820)
    ranked = filter_by_distance([a, b], USER, 5.0)
    assert [r.listing.id for r in ranked] == ["a", "b"]


@pytest.mark.parametrize("location", [None, GeoLocation(), GeoLocation(lat=48.1)])
def test_without_user_location_order_is_unchanged(location):
    listings = [_listing("far", 10.0, 10.0), _listing("none"), _listing("near", 48.1351, 11.582)]
    ranked = filter_by_distance(listings, location, 5.0)
    assert [r.listing.id for r in ranked] == ["far", "none", "near"]
    assert all(r.distance_km is None for r in ranked)


def test_empty_input():
    assert filter_by_distance([], USER) == []


@pytest.mark.parametrize(
    "distance, expected",
    [(0.0, "0 m"), (0.85, "850 m"), (1.0, "1.0 km"), (2.4, "2.4 km"), (12.0, "12.0 km")],
)
def test_format_distance(distance, expected):
    assert format_distance(distance) == expected


def test_ranked_listing_label():
    listing = _listing("x")
    assert RankedListing(listing).distance_label is None
    assert RankedListing(listing, 0.3).distance_label == "300 m"


class TestSearchListings:
    def _ranked(self):
        return [
            RankedListing(_listing("bread", title="Rye bread", category=Category.BAKERY)),
            RankedListing(_listing("milk", title="Oat milk", category=Category.BEVERAGES)),
            RankedListing(_listing("rolls", title="Bread rolls", category=Category.BAKERY)),
        ]

    def test_query_matches_title_case_insensitively(self):
        result = search_listings(self._ranked(), query="BREAD")
        assert [r.listing.id for r in result] == ["bread", "rolls"]

    def test_query_matches_description(self):
        result = search_listings(self._ranked(), query="milk to share")
        assert [r.listing.id for r in result] == ["milk"]

    def test_category_filter(self):
        result = search_listings(self._ranked(), category="Beverages")
        assert [r.listing.id for r in result] == ["milk"]

    def test_all_category_means_no_filter(self):
        assert len(search_listings(self._ranked(), category="All")) == 3
