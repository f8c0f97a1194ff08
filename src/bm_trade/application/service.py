"""TradeApplicationService — trade lifecycle over the repository.

Mutating methods commit on success and roll back on any error.
Read-only methods run without explicit transaction.
Ownership is checked here; the verified-account gate is applied by the
router through bm_gateway.auth.dependencies.require_verified.
"""

import logging
import math
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.bm_common.database import async_session_factory
from src.bm_common.datetime_utils import expires_after
from src.bm_common.enums import TradeStatus
from src.bm_common.errors import (
    InvalidTradeFilterError,
    NotTradeOwnerError,
    TradeNotFoundError,
)
from src.bm_trade.application.schemas import (
    CreateTradeRequest,
    LikeResponse,
    PaginationOut,
    TradeCollectionResponse,
    TradeListResponse,
    TradeOut,
    TradeSearchResponse,
    UpdateTradeRequest,
    WishlistResponse,
)
from src.bm_trade.domain.models import (
    Location,
    Trade,
    TradeFilter,
    TradePreferences,
    TradeSearch,
)
from src.bm_trade.domain.repository import TradeRepositoryProtocol
from src.bm_trade.infrastructure.persistence import TradeRepository

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RADIUS_KM = 50.0


class TradeApplicationService:
    def __init__(self, repo: TradeRepositoryProtocol | None = None) -> None:
        self._repo: TradeRepositoryProtocol = repo or TradeRepository()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_trades(
        self,
        db: AsyncSession,
        flt: TradeFilter,
        page: int,
        limit: int,
    ) -> TradeListResponse:
        if (
            flt.min_points is not None
            and flt.max_points is not None
            and flt.min_points > flt.max_points
        ):
            raise InvalidTradeFilterError("min_points must not exceed max_points")

        offset = (page - 1) * limit
        trades = await self._repo.list_trades(db, flt, offset, limit)
        total = await self._repo.count_trades(db, flt)
        return TradeListResponse(
            trades=[TradeOut.from_domain(t) for t in trades],
            pagination=PaginationOut(total=total, page=page, pages=math.ceil(total / limit)),
        )

    async def search_trades(
        self,
        db: AsyncSession,
        q: str | None,
        category: str | None,
        lat: float | None,
        lng: float | None,
        radius_km: float = DEFAULT_SEARCH_RADIUS_KM,
    ) -> TradeSearchResponse:
        if (lat is None) != (lng is None):
            raise InvalidTradeFilterError("lat and lng must be provided together")

        search = TradeSearch(
            q=q.strip() if q and q.strip() else None,
            category=category,
            latitude=lat,
            longitude=lng,
            radius_m=radius_km * 1000 if lat is not None else None,
        )
        trades = await self._repo.search_trades(db, search, settings.SEARCH_RESULT_LIMIT)
        return TradeSearchResponse(
            trades=[TradeOut.from_domain(t) for t in trades], count=len(trades)
        )

    async def get_trade(self, db: AsyncSession, trade_id: str) -> TradeOut:
        """Fetch one trade. The caller schedules record_view() for the increment."""
        trade = await self._repo.get_trade_by_id(db, trade_id)
        if trade is None:
            raise TradeNotFoundError(trade_id)
        # The persisted increment happens after the response; report the post-view count.
        trade.views += 1
        return TradeOut.from_domain(trade)

    async def record_view(self, trade_id: str) -> None:
        """Fire-and-forget view increment on a fresh session (runs as a background task)."""
        try:
            async with async_session_factory() as db:
                await self._repo.increment_views(db, trade_id)
                await db.commit()
        except Exception:
            logger.warning("View increment failed for trade %s", trade_id, exc_info=True)

    async def get_recommendations(
        self, db: AsyncSession, user_id: str, interests: list[str] | None
    ) -> TradeCollectionResponse:
        limit = settings.RECOMMENDATION_LIMIT
        trades: list[Trade] = []
        if interests:
            trades = await self._repo.list_recommendations(db, user_id, interests, limit)
        if not trades:
            trades = await self._repo.list_recommendations(db, user_id, None, limit)
        return TradeCollectionResponse(
            trades=[TradeOut.from_domain(t) for t in trades], count=len(trades)
        )

    async def get_wishlist(self, db: AsyncSession, user_id: str) -> TradeCollectionResponse:
        trades = await self._repo.list_wishlist(db, user_id)
        return TradeCollectionResponse(
            trades=[TradeOut.from_domain(t) for t in trades], count=len(trades)
        )

    async def get_user_trades(
        self, db: AsyncSession, user_id: str, status: str | None
    ) -> TradeCollectionResponse:
        trades = await self._repo.list_by_owner(db, user_id, status)
        return TradeCollectionResponse(
            trades=[TradeOut.from_domain(t) for t in trades], count=len(trades)
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_trade(
        self, db: AsyncSession, owner_id: str, req: CreateTradeRequest
    ) -> TradeOut:
        trade = Trade(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=req.title,
            description=req.description,
            category=req.category.value,
            subcategory=req.subcategory,
            condition=req.condition.value,
            trade_type=req.trade_type.value,
            valuation=req.valuation.to_domain(),
            trade_points=0,
            status=TradeStatus.ACTIVE.value,
            expires_at=expires_after(settings.TRADE_EXPIRY_DAYS),
            images=[img.to_domain() for img in req.images],
            location=req.location.to_domain() if req.location else Location(),
            preferences=req.preferences.to_domain() if req.preferences else TradePreferences(),
        )
        trade.recompute_points()

        try:
            trade = await self._repo.insert_trade(db, trade)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Trade %s created by %s (%s, %d points)",
            trade.id, owner_id, trade.category, trade.trade_points,
        )
        return TradeOut.from_domain(trade)

    async def update_trade(
        self,
        db: AsyncSession,
        user_id: str,
        trade_id: str,
        req: UpdateTradeRequest,
    ) -> TradeOut:
        try:
            trade = await self._load_owned(db, user_id, trade_id, action="update")
            trade.apply_update(req.to_changes())
            trade = await self._repo.save_trade(db, trade)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return TradeOut.from_domain(trade)

    async def delete_trade(self, db: AsyncSession, user_id: str, trade_id: str) -> None:
        try:
            await self._load_owned(db, user_id, trade_id, action="delete")
            await self._repo.delete_trade(db, trade_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Trade %s deleted by owner %s", trade_id, user_id)

    async def toggle_like(self, db: AsyncSession, user_id: str, trade_id: str) -> LikeResponse:
        try:
            trade = await self._load_for_update(db, trade_id)
            liked = trade.toggle_like(user_id)
            await self._repo.save_engagement(db, trade)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return LikeResponse(liked=liked, likes=trade.likes)

    async def toggle_wishlist(
        self, db: AsyncSession, user_id: str, trade_id: str
    ) -> WishlistResponse:
        try:
            trade = await self._load_for_update(db, trade_id)
            in_wishlist = trade.toggle_wishlist(user_id)
            await self._repo.save_engagement(db, trade)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return WishlistResponse(in_wishlist=in_wishlist)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_for_update(self, db: AsyncSession, trade_id: str) -> Trade:
        trade = await self._repo.get_trade_by_id(db, trade_id, for_update=True)
        if trade is None:
            raise TradeNotFoundError(trade_id)
        return trade

    async def _load_owned(
        self, db: AsyncSession, user_id: str, trade_id: str, action: str
    ) -> Trade:
        trade = await self._load_for_update(db, trade_id)
        if not trade.is_owned_by(user_id):
            raise NotTradeOwnerError(action)
        return trade
