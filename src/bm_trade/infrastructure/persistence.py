"""TradeRepository — concrete implementation of TradeRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
JSONB parameters are passed as serialized strings and CAST to JSONB.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

import json
from dataclasses import asdict
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_trade.domain.models import (
    Location,
    OwnerSummary,
    Trade,
    TradeFilter,
    TradeImage,
    TradePreferences,
    TradeSearch,
)
from src.bm_trade.domain.valuation import Valuation

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    t.id, t.owner_id, t.title, t.description, t.category, t.subcategory,
    t.condition, t.trade_type,
    t.base_value, t.currency, t.age_months, t.quality, t.brand,
    t.trade_points, t.images,
    t.address, t.city, t.state, t.country, t.latitude, t.longitude,
    t.preferences, t.status, t.views, t.likes, t.liked_by, t.in_wishlist,
    t.expires_at, t.created_at, t.updated_at,
    u.name AS owner_name, u.profile_image AS owner_profile_image,
    u.rating_average AS owner_rating_average, u.rating_count AS owner_rating_count
"""

_FROM = "FROM trades t LEFT JOIN users u ON u.id = t.owner_id"

_INSERT_TRADE_SQL = text("""
    INSERT INTO trades (
        id, owner_id, title, description, category, subcategory,
        condition, trade_type,
        base_value, currency, age_months, quality, brand,
        trade_points, images,
        address, city, state, country, latitude, longitude,
        preferences, status, expires_at
    ) VALUES (
        CAST(:id AS UUID), CAST(:owner_id AS UUID), :title, :description, :category,
        :subcategory, :condition, :trade_type,
        :base_value, :currency, :age_months, :quality, :brand,
        :trade_points, CAST(:images AS JSONB),
        :address, :city, :state, :country, :latitude, :longitude,
        CAST(:preferences AS JSONB), :status, :expires_at
    )
    RETURNING created_at, updated_at
""")

_GET_TRADE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    {_FROM}
    WHERE t.id = CAST(:trade_id AS UUID)
""")

_GET_TRADE_FOR_UPDATE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    {_FROM}
    WHERE t.id = CAST(:trade_id AS UUID)
    FOR UPDATE OF t
""")

_UPDATE_TRADE_SQL = text("""
    UPDATE trades
    SET title = :title,
        description = :description,
        category = :category,
        subcategory = :subcategory,
        condition = :condition,
        base_value = :base_value,
        currency = :currency,
        age_months = :age_months,
        quality = :quality,
        brand = :brand,
        trade_points = :trade_points,
        images = CAST(:images AS JSONB),
        address = :address,
        city = :city,
        state = :state,
        country = :country,
        latitude = :latitude,
        longitude = :longitude,
        preferences = CAST(:preferences AS JSONB),
        status = :status,
        updated_at = NOW()
    WHERE id = CAST(:id AS UUID)
    RETURNING updated_at
""")

_UPDATE_ENGAGEMENT_SQL = text("""
    UPDATE trades
    SET liked_by = CAST(:liked_by AS TEXT[]),
        likes = :likes,
        in_wishlist = CAST(:in_wishlist AS TEXT[])
    WHERE id = CAST(:id AS UUID)
""")

_DELETE_TRADE_SQL = text("DELETE FROM trades WHERE id = CAST(:trade_id AS UUID)")

_INCREMENT_VIEWS_SQL = text("""
    UPDATE trades SET views = views + 1 WHERE id = CAST(:trade_id AS UUID)
""")

_FILTER_WHERE = """
    WHERE t.status = CAST(:status AS TEXT)
      AND (CAST(:category AS TEXT) IS NULL OR t.category = CAST(:category AS TEXT))
      AND (CAST(:condition AS TEXT) IS NULL OR t.condition = CAST(:condition AS TEXT))
      AND (CAST(:min_points AS INTEGER) IS NULL
           OR t.trade_points >= CAST(:min_points AS INTEGER))
      AND (CAST(:max_points AS INTEGER) IS NULL
           OR t.trade_points <= CAST(:max_points AS INTEGER))
"""

_LIST_TRADES_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    {_FROM}
    {_FILTER_WHERE}
    ORDER BY t.created_at DESC, t.id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_TRADES_SQL = text(f"""
    SELECT COUNT(*) AS total
    FROM trades t
    {_FILTER_WHERE}
""")

# Great-circle distance in meters (haversine, mean Earth radius 6371 km).
_DISTANCE_EXPR = """
    CASE WHEN CAST(:lat AS DOUBLE PRECISION) IS NULL
              OR t.latitude IS NULL OR t.longitude IS NULL THEN NULL
    ELSE 6371000 * 2 * ASIN(SQRT(
        POWER(SIN(RADIANS(t.latitude - CAST(:lat AS DOUBLE PRECISION)) / 2), 2)
        + COS(RADIANS(CAST(:lat AS DOUBLE PRECISION))) * COS(RADIANS(t.latitude))
          * POWER(SIN(RADIANS(t.longitude - CAST(:lng AS DOUBLE PRECISION)) / 2), 2)
    )) END
"""

_SEARCH_TRADES_SQL = text(f"""
    SELECT * FROM (
        SELECT {_SELECT_COLUMNS}, {_DISTANCE_EXPR} AS distance_m
        {_FROM}
        WHERE t.status = 'active'
          AND (CAST(:q AS TEXT) IS NULL
               OR to_tsvector('english', t.title || ' ' || t.description)
                  @@ plainto_tsquery('english', CAST(:q AS TEXT)))
          AND (CAST(:category AS TEXT) IS NULL OR t.category = CAST(:category AS TEXT))
    ) s
    WHERE CAST(:lat AS DOUBLE PRECISION) IS NULL
       OR (s.distance_m IS NOT NULL AND s.distance_m <= CAST(:radius_m AS DOUBLE PRECISION))
    ORDER BY s.distance_m ASC NULLS LAST, s.created_at DESC
    LIMIT :limit
""")

_RECOMMENDATIONS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    {_FROM}
    WHERE t.status = 'active'
      AND t.owner_id <> CAST(:user_id AS UUID)
      AND (CAST(:categories AS TEXT[]) IS NULL
           OR t.category = ANY(CAST(:categories AS TEXT[])))
    ORDER BY t.created_at DESC
    LIMIT :limit
""")

_WISHLIST_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    {_FROM}
    WHERE t.status = 'active'
      AND CAST(:user_id AS TEXT) = ANY(t.in_wishlist)
    ORDER BY t.created_at DESC
""")

_LIST_BY_OWNER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    {_FROM}
    WHERE t.owner_id = CAST(:owner_id AS UUID)
      AND (CAST(:status AS TEXT) IS NULL OR t.status = CAST(:status AS TEXT))
    ORDER BY t.created_at DESC
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _load_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _row_to_trade(row: Any) -> Trade:
    images = _load_json(row.images, [])
    prefs = _load_json(row.preferences, {})
    owner = None
    if row.owner_name is not None or row.owner_rating_count is not None:
        owner = OwnerSummary(
            id=str(row.owner_id),
            name=row.owner_name,
            profile_image=row.owner_profile_image,
            rating_average=float(row.owner_rating_average or 0),
            rating_count=int(row.owner_rating_count or 0),
        )
    return Trade(
        id=str(row.id),
        owner_id=str(row.owner_id),
        title=row.title,
        description=row.description,
        category=row.category,
        subcategory=row.subcategory,
        condition=row.condition,
        trade_type=row.trade_type,
        valuation=Valuation(
            base_value=row.base_value,
            currency=row.currency,
            age_months=row.age_months,
            quality=row.quality,
            brand=row.brand,
        ),
        trade_points=row.trade_points,
        images=[TradeImage(**img) for img in images],
        location=Location(
            address=row.address or "",
            city=row.city or "",
            state=row.state or "",
            country=row.country or "",
            latitude=row.latitude,
            longitude=row.longitude,
        ),
        preferences=TradePreferences(**prefs),
        status=row.status,
        views=row.views,
        likes=row.likes,
        liked_by=list(row.liked_by or []),
        in_wishlist=list(row.in_wishlist or []),
        expires_at=row.expires_at,
        owner=owner,
        distance_m=getattr(row, "distance_m", None),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _mutable_params(trade: Trade) -> dict[str, Any]:
    return {
        "id": trade.id,
        "title": trade.title,
        "description": trade.description,
        "category": trade.category,
        "subcategory": trade.subcategory,
        "condition": trade.condition,
        "base_value": trade.valuation.base_value,
        "currency": trade.valuation.currency,
        "age_months": trade.valuation.age_months,
        "quality": trade.valuation.quality,
        "brand": trade.valuation.brand,
        "trade_points": trade.trade_points,
        "images": json.dumps([asdict(img) for img in trade.images]),
        "address": trade.location.address,
        "city": trade.location.city,
        "state": trade.location.state,
        "country": trade.location.country,
        "latitude": trade.location.latitude,
        "longitude": trade.location.longitude,
        "preferences": json.dumps(asdict(trade.preferences)),
        "status": trade.status,
    }


def _filter_params(flt: TradeFilter) -> dict[str, Any]:
    return {
        "status": flt.status,
        "category": flt.category,
        "condition": flt.condition,
        "min_points": flt.min_points,
        "max_points": flt.max_points,
    }


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TradeRepository:
    async def insert_trade(self, db: AsyncSession, trade: Trade) -> Trade:
        params = _mutable_params(trade)
        params.update(
            owner_id=trade.owner_id,
            trade_type=trade.trade_type,
            expires_at=trade.expires_at,
        )
        result = await db.execute(_INSERT_TRADE_SQL, params)
        row = result.fetchone()
        trade.created_at = row.created_at
        trade.updated_at = row.updated_at
        return trade

    async def get_trade_by_id(
        self, db: AsyncSession, trade_id: str, for_update: bool = False
    ) -> Trade | None:
        sql = _GET_TRADE_FOR_UPDATE_SQL if for_update else _GET_TRADE_SQL
        result = await db.execute(sql, {"trade_id": trade_id})
        row = result.fetchone()
        return _row_to_trade(row) if row else None

    async def save_trade(self, db: AsyncSession, trade: Trade) -> Trade:
        result = await db.execute(_UPDATE_TRADE_SQL, _mutable_params(trade))
        row = result.fetchone()
        if row is not None:
            trade.updated_at = row.updated_at
        return trade

    async def save_engagement(self, db: AsyncSession, trade: Trade) -> None:
        await db.execute(
            _UPDATE_ENGAGEMENT_SQL,
            {
                "id": trade.id,
                "liked_by": trade.liked_by,
                "likes": trade.likes,
                "in_wishlist": trade.in_wishlist,
            },
        )

    async def delete_trade(self, db: AsyncSession, trade_id: str) -> None:
        await db.execute(_DELETE_TRADE_SQL, {"trade_id": trade_id})

    async def increment_views(self, db: AsyncSession, trade_id: str) -> None:
        await db.execute(_INCREMENT_VIEWS_SQL, {"trade_id": trade_id})

    async def list_trades(
        self, db: AsyncSession, flt: TradeFilter, offset: int, limit: int
    ) -> list[Trade]:
        params = _filter_params(flt)
        params.update(offset=offset, limit=limit)
        result = await db.execute(_LIST_TRADES_SQL, params)
        return [_row_to_trade(row) for row in result.fetchall()]

    async def count_trades(self, db: AsyncSession, flt: TradeFilter) -> int:
        result = await db.execute(_COUNT_TRADES_SQL, _filter_params(flt))
        return int(result.scalar_one())

    async def search_trades(
        self, db: AsyncSession, search: TradeSearch, limit: int
    ) -> list[Trade]:
        result = await db.execute(
            _SEARCH_TRADES_SQL,
            {
                "q": search.q,
                "category": search.category,
                "lat": search.latitude,
                "lng": search.longitude,
                "radius_m": search.radius_m,
                "limit": limit,
            },
        )
        return [_row_to_trade(row) for row in result.fetchall()]

    async def list_recommendations(
        self,
        db: AsyncSession,
        user_id: str,
        categories: list[str] | None,
        limit: int,
    ) -> list[Trade]:
        result = await db.execute(
            _RECOMMENDATIONS_SQL,
            {"user_id": user_id, "categories": categories, "limit": limit},
        )
        return [_row_to_trade(row) for row in result.fetchall()]

    async def list_wishlist(self, db: AsyncSession, user_id: str) -> list[Trade]:
        result = await db.execute(_WISHLIST_SQL, {"user_id": user_id})
        return [_row_to_trade(row) for row in result.fetchall()]

    async def list_by_owner(
        self, db: AsyncSession, owner_id: str, status: str | None
    ) -> list[Trade]:
        result = await db.execute(
            _LIST_BY_OWNER_SQL, {"owner_id": owner_id, "status": status}
        )
        return [_row_to_trade(row) for row in result.fetchall()]
