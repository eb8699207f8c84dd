"""Tests for listing drafts, validation and row mapping."""

from decimal import Decimal

import pytest

from lastbite.errors import ValidationError
from lastbite.models import (
    Actor,
    Category,
    FoodListing,
    GeoLocation,
    ListingDraft,
    ListingStatus,
    MatchRequest,
    MatchStatus,
    PackageStatus,
    StorageCondition,
    coerce_enum,
    to_money,
)


def _draft(**overrides) -> ListingDraft:
    values = dict(
        title="Sourdough loaf",
        description="Baked this morning, half a loaf left",
        price="2.50",
        category="Bakery",
        storage_condition="pantry",
        package_status="opened",
        expiry_label="Tomorrow",
        location=GeoLocation(lat=48.137, lng=11.575, district="Altstadt"),
        image_ref="https://example.com/bread.jpg",
    )
    values.update(overrides)
    return ListingDraft(**values)


class TestToMoney:
    def test_rounds_half_up_to_cents(self):
        assert to_money("1.005") == Decimal("1.01")
        assert to_money(3) == Decimal("3.00")

    def test_accepts_zero(self):
        assert to_money(0) == Decimal("0.00")

    @pytest.mark.parametrize("value", [-1, "-0.01", "abc", "nan", float("inf"), True, None])
    def test_rejects_bad_values(self, value):
        with pytest.raises(ValidationError):
            to_money(value)


def test_coerce_enum_accepts_value_and_name():
    assert coerce_enum(Category, "meat & fish", "category") is Category.MEAT_FISH
    assert coerce_enum(Category, "PREPARED_MEALS", "category") is Category.PREPARED_MEALS
    assert coerce_enum(StorageCondition, StorageCondition.FROZEN, "s") is StorageCondition.FROZEN


def test_coerce_enum_lists_choices_on_error():
    with pytest.raises(ValidationError, match="sealed, opened"):
        coerce_enum(PackageStatus, "vacuum", "package_status")


class TestListingDraft:
    def test_validated_normalizes(self):
        draft = _draft(title="  Sourdough loaf  ", category="bakery").validated()
        assert draft.title == "Sourdough loaf"
        assert draft.price == Decimal("2.50")
        assert draft.category is Category.BAKERY
        assert draft.storage_condition is StorageCondition.PANTRY
        assert draft.package_status is PackageStatus.OPENED
        assert draft.original_price is None

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError, match="title"):
            _draft(title="   ").validated()

    def test_title_too_long_rejected(self):
        with pytest.raises(ValidationError, match="at most 100"):
            _draft(title="x" * 101).validated()

    def test_description_required(self):
        with pytest.raises(ValidationError, match="description"):
            _draft(description="").validated()

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError, match="negative"):
            _draft(price=-1).validated()

    def test_original_price_must_exceed_price(self):
        with pytest.raises(ValidationError, match="original_price"):
            _draft(price="2.00", original_price="2.00").validated()
        draft = _draft(price="2.00", original_price="5").validated()
        assert draft.original_price == Decimal("5.00")

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError, match="category"):
            _draft(category="Furniture").validated()

    @pytest.mark.parametrize(
        "location",
        [GeoLocation(lat=999, lng=0.0), GeoLocation(lat=0.0, lng=-181), GeoLocation(lat=48.1)],
    )
    def test_bad_coordinates_rejected(self, location):
        with pytest.raises(ValidationError, match="location"):
            _draft(location=location).validated()

    def test_location_without_coordinates_allowed(self):
        draft = _draft(location=GeoLocation(address="Marienplatz 1")).validated()
        assert draft.location.address == "Marienplatz 1"

    def test_expiry_label_optional_but_bounded(self):
        assert _draft(expiry_label="").validated().expiry_label == ""
        with pytest.raises(ValidationError, match="expiry_label"):
            _draft(expiry_label="x" * 41).validated()


class TestGeoLocation:
    def test_zero_coordinates_are_valid(self):
        assert GeoLocation(lat=0.0, lng=0.0).has_coordinates

    def test_missing_or_out_of_range(self):
        assert not GeoLocation().has_coordinates
        assert not GeoLocation(lat=48.1, lng=None).has_coordinates
        assert not GeoLocation(lat=91.0, lng=0.0).has_coordinates
        assert not GeoLocation(lat=float("nan"), lng=0.0).has_coordinates

    def test_label_prefers_district(self):
        loc = GeoLocation(address="Marienplatz 1", city="Munich", district="Altstadt")
        assert loc.label() == "Altstadt"
        assert GeoLocation(address="Marienplatz 1").label() == "Marienplatz 1"


def test_actor_requires_id():
    with pytest.raises(ValidationError):
        Actor("")
    assert Actor("u1", "  ").display_name == "Anonymous"


class TestFoodListing:
    def _row(self, **overrides) -> dict:
        row = {
            "id": "l1",
            "title": "Apples",
            "description": "A bag of apples",
            "price_cents": 0,
            "original_price_cents": None,
            "category": "Produce",
            "storage_condition": "pantry",
            "package_status": "sealed",
            "expiry_label": "",
            "lat": 0.0,
            "lng": 0.0,
            "address": None,
            "city": None,
            "district": None,
            "image_ref": "img",
            "creator_id": "giver",
            "creator_display_name": "Gina",
            "status": "available",
            "reserved_by": None,
            "reserved_by_display_name": None,
            "created_at": "2025-01-10T10:00:00.000Z",
            "updated_at": "2025-01-10T10:00:00.000Z",
        }
        row.update(overrides)
        return row

    def test_from_row(self):
        listing = FoodListing.from_row(self._row(original_price_cents=350))
        assert listing.price == Decimal("0.00")
        assert listing.is_free
        assert listing.original_price == Decimal("3.50")
        assert listing.category is Category.PRODUCE
        assert listing.location.has_coordinates

    def test_from_row_without_location(self):
        listing = FoodListing.from_row(self._row(lat=None, lng=None))
        assert listing.location is None

    def test_reserved_requires_holder(self):
        with pytest.raises(ValidationError, match="reserved_by"):
            FoodListing.from_row(self._row(status="reserved"))

    def test_available_must_not_have_holder(self):
        with pytest.raises(ValidationError, match="reserved_by"):
            FoodListing.from_row(self._row(reserved_by="seeker"))

    def test_to_dict_is_json_friendly(self):
        listing = FoodListing.from_row(
            self._row(status="completed", reserved_by="s1", reserved_by_display_name="Sam")
        )
        data = listing.to_dict()
        assert data["status"] == "completed"
        assert data["price"] == "0.00"
        assert data["category"] == "Produce"
        assert data["location"]["lat"] == 0.0
        assert listing.status is ListingStatus.COMPLETED


def test_match_request_helpers():
    match = MatchRequest(
        id="m1",
        listing_id="l1",
        giver_id="g",
        seeker_id="s",
        giver_display_name="Gina",
        seeker_display_name="Sam",
    )
    assert match.status is MatchStatus.INTERESTED
    assert match.involves("g") and match.involves("s")
    assert not match.involves("x")
    assert match.counterpart_name("g") == "Sam"
    assert match.counterpart_name("s") == "Gina"
    assert match.to_dict()["status"] == "interested"
