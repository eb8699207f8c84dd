"""Data models for food listings, match requests and chat messages."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, replace
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation as DecimalError
from enum import Enum

from .errors import ValidationError

TITLE_MAX = 100
DESCRIPTION_MAX = 1000
EXPIRY_LABEL_MAX = 40
MESSAGE_MAX = 1000

_CENT = Decimal("0.01")


class ListingStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    COMPLETED = "completed"


class MatchStatus(str, Enum):
    INTERESTED = "interested"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class Category(str, Enum):
    PRODUCE = "Produce"
    BAKERY = "Bakery"
    DAIRY = "Dairy"
    MEAT_FISH = "Meat & Fish"
    PREPARED_MEALS = "Prepared Meals"
    PANTRY_STAPLES = "Pantry Staples"
    SNACKS = "Snacks"
    BEVERAGES = "Beverages"
    OTHER = "Other"


class StorageCondition(str, Enum):
    PANTRY = "pantry"
    REFRIGERATED = "refrigerated"
    FROZEN = "frozen"


class PackageStatus(str, Enum):
    SEALED = "sealed"
    OPENED = "opened"


def coerce_enum(enum_cls: type[Enum], value, field_name: str):
    """Accept an enum member, its value or its name (case-insensitive)."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        needle = value.strip().lower()
        for member in enum_cls:
            if needle in (member.value.lower(), member.name.lower()):
                return member
    choices = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"{field_name} must be one of: {choices} (got {value!r})")


def to_money(value, field_name: str = "price") -> Decimal:
    """Convert a number or numeric string to a non-negative Decimal in cents."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (DecimalError, ValueError):
        raise ValidationError(f"{field_name} must be a number (got {value!r})")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite")
    if amount < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def money_to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def cents_to_money(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(_CENT)


def _bounded_text(value, field_name: str, max_len: int, *, required: bool = True) -> str:
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text")
    text = value.strip()
    if required and not text:
        raise ValidationError(f"{field_name} is required")
    if len(text) > max_len:
        raise ValidationError(f"{field_name} must be at most {max_len} characters")
    return text


@dataclass
class Actor:
    """The calling user, as supplied by the identity provider."""

    id: str
    display_name: str = "Anonymous"

    def __post_init__(self) -> None:
        if not self.id or not str(self.id).strip():
            raise ValidationError("actor id is required")
        self.display_name = (self.display_name or "").strip() or "Anonymous"


@dataclass
class GeoLocation:
    lat: float | None = None
    lng: float | None = None
    address: str = ""
    city: str = ""
    district: str = ""

    @property
    def has_coordinates(self) -> bool:
        """True if both coordinates are finite and within WGS84 range."""
        if self.lat is None or self.lng is None:
            return False
        try:
            lat, lng = float(self.lat), float(self.lng)
        except (TypeError, ValueError):
            return False
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return False
        return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0

    def label(self) -> str:
        return self.district or self.city or self.address


@dataclass
class ListingDraft:
    """Content of a listing as submitted by its giver, before it is stored."""

    title: str
    description: str
    price: Decimal | float | int | str
    category: Category | str
    storage_condition: StorageCondition | str
    package_status: PackageStatus | str
    expiry_label: str = ""
    location: GeoLocation | None = None
    original_price: Decimal | float | int | str | None = None
    image_ref: str = ""

    def validated(self) -> ListingDraft:
        """Return a normalized copy, raising ValidationError on bad input."""
        price = to_money(self.price, "price")
        original = None
        if self.original_price is not None and self.original_price != "":
            original = to_money(self.original_price, "original_price")
            if original <= price:
                raise ValidationError("original_price must exceed price")
        loc = self.location
        if loc is not None:
            if not isinstance(loc, GeoLocation):
                raise ValidationError("location must be a GeoLocation")
            if (loc.lat is not None or loc.lng is not None) and not loc.has_coordinates:
                raise ValidationError(
                    "location coordinates are incomplete or out of range "
                    f"(lat={loc.lat!r}, lng={loc.lng!r})"
                )
        return replace(
            self,
            title=_bounded_text(self.title, "title", TITLE_MAX),
            description=_bounded_text(self.description, "description", DESCRIPTION_MAX),
            price=price,
            original_price=original,
            category=coerce_enum(Category, self.category, "category"),
            storage_condition=coerce_enum(
                StorageCondition, self.storage_condition, "storage_condition"
            ),
            package_status=coerce_enum(PackageStatus, self.package_status, "package_status"),
            expiry_label=_bounded_text(
                self.expiry_label, "expiry_label", EXPIRY_LABEL_MAX, required=False
            ),
            image_ref=(self.image_ref or "").strip(),
        )


# Fields a giver may edit after posting.
EDITABLE_FIELDS = frozenset({
    "title", "description", "price", "original_price", "category",
    "storage_condition", "package_status", "expiry_label", "location", "image_ref",
})


@dataclass
class FoodListing:
    """A posted food item.

    ``reserved_by`` is set exactly when the listing is reserved or completed.
    """

    id: str
    title: str
    description: str
    price: Decimal
    category: Category
    storage_condition: StorageCondition
    package_status: PackageStatus
    creator_id: str
    creator_display_name: str = "Anonymous"
    original_price: Decimal | None = None
    expiry_label: str = ""
    location: GeoLocation | None = None
    image_ref: str = ""
    status: ListingStatus = ListingStatus.AVAILABLE
    reserved_by: str | None = None
    reserved_by_display_name: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        held = self.status in (ListingStatus.RESERVED, ListingStatus.COMPLETED)
        if held != (self.reserved_by is not None):
            raise ValidationError(
                f"listing {self.id}: reserved_by must be set iff status is "
                f"reserved or completed (status={self.status.value})"
            )

    @property
    def is_free(self) -> bool:
        return self.price == 0

    def draft(self) -> ListingDraft:
        return ListingDraft(
            title=self.title,
            description=self.description,
            price=self.price,
            category=self.category,
            storage_condition=self.storage_condition,
            package_status=self.package_status,
            expiry_label=self.expiry_label,
            location=self.location,
            original_price=self.original_price,
            image_ref=self.image_ref,
        )

    @classmethod
    def from_row(cls, row: dict) -> FoodListing:
        location = None
        if any(row.get(k) is not None for k in ("lat", "lng")) or row.get("address"):
            location = GeoLocation(
                lat=row.get("lat"),
                lng=row.get("lng"),
                address=row.get("address") or "",
                city=row.get("city") or "",
                district=row.get("district") or "",
            )
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            price=cents_to_money(row["price_cents"]),
            original_price=cents_to_money(row.get("original_price_cents")),
            category=Category(row["category"]),
            storage_condition=StorageCondition(row["storage_condition"]),
            package_status=PackageStatus(row["package_status"]),
            expiry_label=row.get("expiry_label") or "",
            location=location,
            image_ref=row.get("image_ref") or "",
            creator_id=row["creator_id"],
            creator_display_name=row["creator_display_name"],
            status=ListingStatus(row["status"]),
            reserved_by=row.get("reserved_by"),
            reserved_by_display_name=row.get("reserved_by_display_name"),
            created_at=row.get("created_at") or "",
            updated_at=row.get("updated_at") or "",
        )

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        data = asdict(self)
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                data[f.name] = value.value
            elif isinstance(value, Decimal):
                data[f.name] = str(value)
        return data


@dataclass
class MatchRequest:
    """A seeker's interest in a listing, pending the giver's decision."""

    id: str
    listing_id: str
    giver_id: str
    seeker_id: str
    listing_title: str = ""
    listing_image_ref: str = ""
    giver_display_name: str = "Anonymous"
    seeker_display_name: str = "Anonymous"
    status: MatchStatus = MatchStatus.INTERESTED
    created_at: str = ""
    updated_at: str = ""

    def involves(self, user_id: str) -> bool:
        return user_id in (self.giver_id, self.seeker_id)

    def counterpart_name(self, user_id: str) -> str:
        if user_id == self.giver_id:
            return self.seeker_display_name
        return self.giver_display_name

    @classmethod
    def from_row(cls, row: dict) -> MatchRequest:
        data = {f.name: row[f.name] for f in fields(cls) if f.name in row}
        data["status"] = MatchStatus(row["status"])
        return cls(**data)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class ChatMessage:
    id: str
    match_id: str
    sender_id: str
    text: str
    sender_display_name: str = "Anonymous"
    created_at: str = ""

    @classmethod
    def from_row(cls, row: dict) -> ChatMessage:
        return cls(**{f.name: row[f.name] for f in fields(cls) if f.name in row})


@dataclass
class UserProfile:
    id: str
    username: str
    display_name: str = ""
    trial_start: str | None = None
    trial_end: str | None = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: dict) -> UserProfile:
        return cls(
            id=row["id"],
            username=row["username"],
            display_name=row.get("display_name") or "",
            trial_start=row.get("trial_start"),
            trial_end=row.get("trial_end"),
            created_at=row.get("created_at") or "",
        )
