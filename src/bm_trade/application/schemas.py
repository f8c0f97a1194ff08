"""Pydantic request/response schemas for bm_trade.

All responses are wrapped in ApiResponse at the router layer.
Request models ignore unknown fields: a client-sent `trade_points` never
reaches the domain, points are always computed server-side.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.bm_common.enums import (
    ExchangeMode,
    ItemCondition,
    TradeCategory,
    TradeStatus,
    TradeType,
)
from src.bm_trade.domain.models import (
    Location,
    OwnerSummary,
    Trade,
    TradeImage,
    TradePreferences,
)
from src.bm_trade.domain.valuation import Valuation

# ---------------------------------------------------------------------------
# Nested value objects
# ---------------------------------------------------------------------------


class ValuationIn(BaseModel):
    base_value: float = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    age_months: float = Field(0, ge=0, description="Item age in months")
    quality: float = Field(5, ge=1, le=10)
    brand: str | None = Field(None, max_length=100)

    def to_domain(self) -> Valuation:
        return Valuation(
            base_value=self.base_value,
            currency=self.currency,
            age_months=self.age_months,
            quality=self.quality,
            brand=self.brand,
        )


class TradeImageIn(BaseModel):
    url: str = Field(..., min_length=1)
    is_main: bool = False
    caption: str | None = None

    def to_domain(self) -> TradeImage:
        return TradeImage(url=self.url, is_main=self.is_main, caption=self.caption)


class LocationIn(BaseModel):
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def _coordinates_paired(self) -> "LocationIn":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be sent together")
        return self

    def to_domain(self) -> Location:
        return Location(**self.model_dump())


class PreferencesIn(BaseModel):
    looking_for: list[str] = Field(default_factory=list)
    trade_type: ExchangeMode = ExchangeMode.BOTH
    max_distance_km: float | None = Field(None, gt=0)

    def to_domain(self) -> TradePreferences:
        return TradePreferences(
            looking_for=self.looking_for,
            trade_type=self.trade_type.value,
            max_distance_km=self.max_distance_km,
        )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateTradeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    category: TradeCategory
    subcategory: str | None = None
    condition: ItemCondition = ItemCondition.GOOD
    trade_type: TradeType = TradeType.PRODUCT
    valuation: ValuationIn
    images: list[TradeImageIn] = Field(default_factory=list)
    location: LocationIn | None = None
    preferences: PreferencesIn | None = None


class UpdateTradeRequest(BaseModel):
    """Partial update; only fields explicitly sent are applied."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, min_length=1, max_length=1000)
    category: TradeCategory | None = None
    subcategory: str | None = None
    condition: ItemCondition | None = None
    valuation: ValuationIn | None = None
    images: list[TradeImageIn] | None = None
    location: LocationIn | None = None
    preferences: PreferencesIn | None = None
    status: TradeStatus | None = None

    def to_changes(self) -> dict[str, object]:
        """Convert explicitly-set fields to domain values."""
        changes: dict[str, object] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is None and name != "subcategory":
                continue
            if isinstance(value, (ValuationIn, LocationIn, PreferencesIn)):
                changes[name] = value.to_domain()
            elif name == "images":
                changes[name] = [img.to_domain() for img in value]
            elif isinstance(value, (TradeCategory, ItemCondition, TradeStatus)):
                changes[name] = value.value
            else:
                changes[name] = value
        return changes


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ValuationOut(BaseModel):
    base_value: float
    currency: str
    age_months: float
    quality: float
    brand: str | None


class OwnerOut(BaseModel):
    id: str
    name: str | None
    profile_image: str | None
    rating_average: float
    rating_count: int

    @classmethod
    def from_domain(cls, owner: OwnerSummary) -> "OwnerOut":
        return cls(
            id=owner.id,
            name=owner.name,
            profile_image=owner.profile_image,
            rating_average=owner.rating_average,
            rating_count=owner.rating_count,
        )


class TradeOut(BaseModel):
    id: str
    owner_id: str
    owner: OwnerOut | None
    title: str
    description: str
    category: str
    subcategory: str | None
    condition: str
    trade_type: str
    valuation: ValuationOut
    trade_points: int
    images: list[TradeImageIn]
    location: LocationIn
    preferences: PreferencesIn
    status: str
    views: int
    likes: int
    liked_by: list[str]
    in_wishlist: list[str]
    distance_km: float | None = None
    expires_at: datetime
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, trade: Trade) -> "TradeOut":
        return cls(
            id=trade.id,
            owner_id=trade.owner_id,
            owner=OwnerOut.from_domain(trade.owner) if trade.owner else None,
            title=trade.title,
            description=trade.description,
            category=trade.category,
            subcategory=trade.subcategory,
            condition=trade.condition,
            trade_type=trade.trade_type,
            valuation=ValuationOut(
                base_value=trade.valuation.base_value,
                currency=trade.valuation.currency,
                age_months=trade.valuation.age_months,
                quality=trade.valuation.quality,
                brand=trade.valuation.brand,
            ),
            trade_points=trade.trade_points,
            images=[
                TradeImageIn(url=i.url, is_main=i.is_main, caption=i.caption)
                for i in trade.images
            ],
            location=LocationIn(
                address=trade.location.address,
                city=trade.location.city,
                state=trade.location.state,
                country=trade.location.country,
                latitude=trade.location.latitude,
                longitude=trade.location.longitude,
            ),
            preferences=PreferencesIn(
                looking_for=trade.preferences.looking_for,
                trade_type=ExchangeMode(trade.preferences.trade_type),
                max_distance_km=trade.preferences.max_distance_km,
            ),
            status=trade.status,
            views=trade.views,
            likes=trade.likes,
            liked_by=trade.liked_by,
            in_wishlist=trade.in_wishlist,
            distance_km=(
                round(trade.distance_m / 1000, 3) if trade.distance_m is not None else None
            ),
            expires_at=trade.expires_at,
            created_at=trade.created_at,
            updated_at=trade.updated_at,
        )


class PaginationOut(BaseModel):
    total: int
    page: int
    pages: int


class TradeListResponse(BaseModel):
    trades: list[TradeOut]
    pagination: PaginationOut


class TradeSearchResponse(BaseModel):
    trades: list[TradeOut]
    count: int


class TradeCollectionResponse(BaseModel):
    trades: list[TradeOut]
    count: int


class TradeResponse(BaseModel):
    trade: TradeOut


class LikeResponse(BaseModel):
    liked: bool
    likes: int


class WishlistResponse(BaseModel):
    in_wishlist: bool
