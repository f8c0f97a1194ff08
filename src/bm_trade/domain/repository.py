# src/bm_trade/domain/repository.py
"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_trade.domain.models import Trade, TradeFilter, TradeSearch


class TradeRepositoryProtocol(Protocol):
    async def insert_trade(self, db: AsyncSession, trade: Trade) -> Trade: ...

    async def get_trade_by_id(
        self, db: AsyncSession, trade_id: str, for_update: bool = False
    ) -> Trade | None: ...

    async def save_trade(self, db: AsyncSession, trade: Trade) -> Trade: ...

    async def save_engagement(self, db: AsyncSession, trade: Trade) -> None: ...

    async def delete_trade(self, db: AsyncSession, trade_id: str) -> None: ...

    async def increment_views(self, db: AsyncSession, trade_id: str) -> None: ...

    async def list_trades(
        self, db: AsyncSession, flt: TradeFilter, offset: int, limit: int
    ) -> list[Trade]: ...

    async def count_trades(self, db: AsyncSession, flt: TradeFilter) -> int: ...

    async def search_trades(
        self, db: AsyncSession, search: TradeSearch, limit: int
    ) -> list[Trade]: ...

    async def list_recommendations(
        self,
        db: AsyncSession,
        user_id: str,
        categories: list[str] | None,
        limit: int,
    ) -> list[Trade]: ...

    async def list_wishlist(self, db: AsyncSession, user_id: str) -> list[Trade]: ...

    async def list_by_owner(
        self, db: AsyncSession, owner_id: str, status: str | None
    ) -> list[Trade]: ...
