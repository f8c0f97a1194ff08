"""Domain models for bm_trade — dataclasses plus the trade-points invariant.

`Trade.trade_points` must always equal compute_trade_points() of the current
valuation, condition and category. Every mutation path goes through
`Trade.apply_update()` or `Trade.recompute_points()`; nothing else writes it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.bm_trade.domain.valuation import Valuation, compute_trade_points

logger = logging.getLogger(__name__)

# Fields an owner may change through an update request.
UPDATABLE_FIELDS: frozenset[str] = frozenset({
    "title",
    "description",
    "category",
    "subcategory",
    "condition",
    "valuation",
    "images",
    "location",
    "preferences",
    "status",
})

# Fields that feed the valuation engine.
VALUATION_INPUT_FIELDS: frozenset[str] = frozenset({"valuation", "condition", "category"})


@dataclass
class Location:
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    latitude: float | None = None
    longitude: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class TradeImage:
    url: str
    is_main: bool = False
    caption: str | None = None


@dataclass
class TradePreferences:
    looking_for: list[str] = field(default_factory=list)
    trade_type: str = "both"
    max_distance_km: float | None = None


@dataclass
class OwnerSummary:
    """Subset of the owner's profile embedded in trade responses."""

    id: str
    name: str | None
    profile_image: str | None
    rating_average: float
    rating_count: int


@dataclass
class Trade:
    id: str
    owner_id: str
    title: str
    description: str
    category: str
    condition: str
    trade_type: str
    valuation: Valuation
    trade_points: int
    status: str
    expires_at: datetime
    subcategory: str | None = None
    images: list[TradeImage] = field(default_factory=list)
    location: Location = field(default_factory=Location)
    preferences: TradePreferences = field(default_factory=TradePreferences)
    views: int = 0
    likes: int = 0
    liked_by: list[str] = field(default_factory=list)
    in_wishlist: list[str] = field(default_factory=list)
    owner: OwnerSummary | None = None
    distance_m: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def recompute_points(self) -> int:
        self.trade_points = compute_trade_points(self.valuation, self.condition, self.category)
        return self.trade_points

    def apply_update(self, changes: dict[str, Any]) -> bool:
        """Apply whitelisted field changes; return True if points were recomputed.

        Keys outside UPDATABLE_FIELDS are ignored.
        """
        touched = {k for k in changes if k in UPDATABLE_FIELDS}
        for name in touched:
            setattr(self, name, changes[name])

        if touched & VALUATION_INPUT_FIELDS:
            before = self.trade_points
            self.recompute_points()
            logger.info(
                "Trade %s points recomputed: %d -> %d", self.id, before, self.trade_points
            )
            return True
        return False

    def toggle_like(self, user_id: str) -> bool:
        """Flip user_id's like. Returns the new liked state; likes == len(liked_by)."""
        if user_id in self.liked_by:
            self.liked_by = [uid for uid in self.liked_by if uid != user_id]
            self.likes = len(self.liked_by)
            return False
        self.liked_by = [*self.liked_by, user_id]
        self.likes = len(self.liked_by)
        return True

    def toggle_wishlist(self, user_id: str) -> bool:
        """Flip user_id's wishlist membership. Returns the new state."""
        if user_id in self.in_wishlist:
            self.in_wishlist = [uid for uid in self.in_wishlist if uid != user_id]
            return False
        self.in_wishlist = [*self.in_wishlist, user_id]
        return True


@dataclass
class TradeFilter:
    status: str = "active"
    category: str | None = None
    condition: str | None = None
    min_points: int | None = None
    max_points: int | None = None


@dataclass
class TradeSearch:
    q: str | None = None
    category: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    radius_m: float | None = None
