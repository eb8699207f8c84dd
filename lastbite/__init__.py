"""LastBite: share and sell surplus food with people nearby."""

from .config import MarketConfig, load_config
from .db import MarketStore
from .errors import (
    Conflict,
    InvalidOperation,
    LastBiteError,
    NotFound,
    StoreUnavailable,
    ValidationError,
)
from .fees import FeeBreakdown, FeePolicy, fee_breakdown, giver_receives, platform_fee
from .images import GoogleDriveImageStore, ImageStore, LocalImageStore, create_image_store
from .models import (
    Actor,
    Category,
    ChatMessage,
    FoodListing,
    GeoLocation,
    ListingDraft,
    ListingStatus,
    MatchRequest,
    MatchStatus,
    PackageStatus,
    StorageCondition,
)
from .proximity import RankedListing, filter_by_distance, format_distance, haversine_km
from .workflow import MatchWorkflow

__all__ = [
    "MatchWorkflow",
    "MarketStore",
    "Actor",
    "FoodListing",
    "ListingDraft",
    "MatchRequest",
    "ChatMessage",
    "GeoLocation",
    "Category",
    "StorageCondition",
    "PackageStatus",
    "ListingStatus",
    "MatchStatus",
    "RankedListing",
    "filter_by_distance",
    "format_distance",
    "haversine_km",
    "FeePolicy",
    "FeeBreakdown",
    "fee_breakdown",
    "platform_fee",
    "giver_receives",
    "ImageStore",
    "LocalImageStore",
    "GoogleDriveImageStore",
    "create_image_store",
    "MarketConfig",
    "load_config",
    "LastBiteError",
    "ValidationError",
    "InvalidOperation",
    "Conflict",
    "NotFound",
    "StoreUnavailable",
]
