# tests/unit/test_trade_service.py
"""Unit tests for TradeApplicationService using mock repository."""
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.bm_common.errors import (
    InvalidTradeFilterError,
    NotTradeOwnerError,
    TradeNotFoundError,
)
from src.bm_trade.application.schemas import CreateTradeRequest, UpdateTradeRequest
from src.bm_trade.application.service import TradeApplicationService
from src.bm_trade.domain.models import Trade, TradeFilter
from src.bm_trade.domain.valuation import Valuation


def _make_trade(**kwargs) -> Trade:
    defaults = dict(
        id="trade-1", owner_id="owner-1", title="Camera", description="Mirrorless body",
        category="Electronics", condition="good", trade_type="product",
        valuation=Valuation(base_value=200), trade_points=180, status="active",
        expires_at=datetime.now(UTC), created_at=datetime.now(UTC),
        updated_at=datetime.now(UTC),
    )
    defaults.update(kwargs)
    return Trade(**defaults)


@pytest.fixture
def db():
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def mock_repo():
    repo = MagicMock()
    repo.insert_trade = AsyncMock(side_effect=lambda db, trade: trade)
    repo.save_trade = AsyncMock(side_effect=lambda db, trade: trade)
    repo.save_engagement = AsyncMock()
    repo.delete_trade = AsyncMock()
    return repo


class TestListTrades:
    async def test_pagination_math(self, db, mock_repo):
        mock_repo.list_trades = AsyncMock(return_value=[_make_trade(id=f"t{i}") for i in range(5)])
        mock_repo.count_trades = AsyncMock(return_value=45)
        svc = TradeApplicationService(repo=mock_repo)

        resp = await svc.list_trades(db, TradeFilter(), page=3, limit=5)

        assert len(resp.trades) == 5
        assert resp.pagination.total == 45
        assert resp.pagination.page == 3
        assert resp.pagination.pages == 9
        assert mock_repo.list_trades.call_args.args[2] == 10  # offset

    async def test_empty_result_has_zero_pages(self, db, mock_repo):
        mock_repo.list_trades = AsyncMock(return_value=[])
        mock_repo.count_trades = AsyncMock(return_value=0)
        svc = TradeApplicationService(repo=mock_repo)

        resp = await svc.list_trades(db, TradeFilter(), page=1, limit=20)

        assert resp.pagination.pages == 0

    async def test_min_above_max_rejected(self, db, mock_repo):
        svc = TradeApplicationService(repo=mock_repo)
        with pytest.raises(InvalidTradeFilterError):
            await svc.list_trades(db, TradeFilter(min_points=500, max_points=100), 1, 20)


class TestSearchTrades:
    async def test_radius_converted_to_meters(self, db, mock_repo):
        mock_repo.search_trades = AsyncMock(return_value=[_make_trade(distance_m=800.0)])
        svc = TradeApplicationService(repo=mock_repo)

        resp = await svc.search_trades(db, "camera", None, 48.85, 2.35, 10)

        search = mock_repo.search_trades.call_args.args[1]
        assert search.radius_m == 10_000
        assert search.q == "camera"
        assert mock_repo.search_trades.call_args.args[2] == 20
        assert resp.count == 1
        assert resp.trades[0].distance_km == pytest.approx(0.8)

    async def test_default_radius_is_fifty_km(self, db, mock_repo):
        mock_repo.search_trades = AsyncMock(return_value=[])
        svc = TradeApplicationService(repo=mock_repo)

        await svc.search_trades(db, None, None, 48.85, 2.35)

        assert mock_repo.search_trades.call_args.args[1].radius_m == 50_000

    async def test_lat_without_lng_rejected(self, db, mock_repo):
        svc = TradeApplicationService(repo=mock_repo)
        with pytest.raises(InvalidTradeFilterError):
            await svc.search_trades(db, None, None, 48.85, None)

    async def test_blank_query_is_no_query(self, db, mock_repo):
        mock_repo.search_trades = AsyncMock(return_value=[])
        svc = TradeApplicationService(repo=mock_repo)

        await svc.search_trades(db, "   ", "Books", None, None)

        search = mock_repo.search_trades.call_args.args[1]
        assert search.q is None
        assert search.category == "Books"
        assert search.radius_m is None


class TestGetTrade:
    async def test_not_found(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=None)
        svc = TradeApplicationService(repo=mock_repo)
        with pytest.raises(TradeNotFoundError):
            await svc.get_trade(db, "missing")

    async def test_reports_incremented_views(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=_make_trade(views=7))
        svc = TradeApplicationService(repo=mock_repo)

        out = await svc.get_trade(db, "trade-1")

        assert out.views == 8

    async def test_record_view_failure_is_swallowed(self, mock_repo):
        mock_repo.increment_views = AsyncMock(side_effect=RuntimeError("db down"))
        session = MagicMock()
        session.commit = AsyncMock()
        factory_cm = MagicMock()
        factory_cm.__aenter__ = AsyncMock(return_value=session)
        factory_cm.__aexit__ = AsyncMock(return_value=False)
        svc = TradeApplicationService(repo=mock_repo)

        with patch(
            "src.bm_trade.application.service.async_session_factory",
            return_value=factory_cm,
        ):
            await svc.record_view("trade-1")

        session.commit.assert_not_awaited()


class TestRecommendations:
    async def test_falls_back_when_no_interest_matches(self, db, mock_repo):
        fallback = [_make_trade(id="recent")]
        mock_repo.list_recommendations = AsyncMock(side_effect=[[], fallback])
        svc = TradeApplicationService(repo=mock_repo)

        resp = await svc.get_recommendations(db, "user-1", ["Books"])

        assert [t.id for t in resp.trades] == ["recent"]
        first, second = mock_repo.list_recommendations.call_args_list
        assert first.args[2] == ["Books"]
        assert second.args[2] is None
        assert second.args[3] == 10

    async def test_no_interests_goes_straight_to_recent(self, db, mock_repo):
        mock_repo.list_recommendations = AsyncMock(return_value=[_make_trade()])
        svc = TradeApplicationService(repo=mock_repo)

        await svc.get_recommendations(db, "user-1", [])

        mock_repo.list_recommendations.assert_awaited_once()
        assert mock_repo.list_recommendations.call_args.args[2] is None


class TestCreateTrade:
    async def test_server_computes_points(self, db, mock_repo):
        svc = TradeApplicationService(repo=mock_repo)
        req = CreateTradeRequest(
            title="Camera", description="Body", category="Electronics",
            valuation={"base_value": 200}, trade_points=5,
        )

        out = await svc.create_trade(db, "owner-1", req)

        assert out.trade_points == 180
        assert out.status == "active"
        assert out.owner_id == "owner-1"
        assert out.location.city == ""
        assert (out.expires_at - datetime.now(UTC)).days in (89, 90)
        db.commit.assert_awaited_once()

    async def test_rollback_on_repo_error(self, db, mock_repo):
        mock_repo.insert_trade = AsyncMock(side_effect=RuntimeError("insert failed"))
        svc = TradeApplicationService(repo=mock_repo)
        req = CreateTradeRequest(
            title="Camera", description="Body", category="Electronics",
            valuation={"base_value": 200},
        )

        with pytest.raises(RuntimeError):
            await svc.create_trade(db, "owner-1", req)

        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()


class TestUpdateTrade:
    async def test_owner_update_recomputes_points(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=_make_trade())
        svc = TradeApplicationService(repo=mock_repo)

        out = await svc.update_trade(
            db, "owner-1", "trade-1", UpdateTradeRequest(valuation={"base_value": 400})
        )

        assert out.trade_points == 360
        assert mock_repo.get_trade_by_id.call_args.kwargs["for_update"] is True
        db.commit.assert_awaited_once()

    async def test_description_update_keeps_points(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=_make_trade())
        svc = TradeApplicationService(repo=mock_repo)

        out = await svc.update_trade(
            db, "owner-1", "trade-1", UpdateTradeRequest(description="Now with strap")
        )

        assert out.trade_points == 180
        assert out.description == "Now with strap"

    async def test_non_owner_forbidden(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=_make_trade())
        svc = TradeApplicationService(repo=mock_repo)

        with pytest.raises(NotTradeOwnerError):
            await svc.update_trade(db, "intruder", "trade-1", UpdateTradeRequest(title="Mine"))

        mock_repo.save_trade.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_missing_trade(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=None)
        svc = TradeApplicationService(repo=mock_repo)
        with pytest.raises(TradeNotFoundError):
            await svc.update_trade(db, "owner-1", "nope", UpdateTradeRequest(title="x"))


class TestDeleteTrade:
    async def test_owner_deletes(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=_make_trade())
        svc = TradeApplicationService(repo=mock_repo)

        await svc.delete_trade(db, "owner-1", "trade-1")

        mock_repo.delete_trade.assert_awaited_once_with(db, "trade-1")
        db.commit.assert_awaited_once()

    async def test_non_owner_forbidden(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=_make_trade())
        svc = TradeApplicationService(repo=mock_repo)

        with pytest.raises(NotTradeOwnerError) as exc_info:
            await svc.delete_trade(db, "intruder", "trade-1")

        assert exc_info.value.http_status == 403
        mock_repo.delete_trade.assert_not_awaited()


class TestEngagement:
    async def test_like_then_unlike(self, db, mock_repo):
        trade = _make_trade()
        mock_repo.get_trade_by_id = AsyncMock(return_value=trade)
        svc = TradeApplicationService(repo=mock_repo)

        liked = await svc.toggle_like(db, "u1", "trade-1")
        assert (liked.liked, liked.likes) == (True, 1)

        unliked = await svc.toggle_like(db, "u1", "trade-1")
        assert (unliked.liked, unliked.likes) == (False, 0)
        assert mock_repo.save_engagement.await_count == 2

    async def test_wishlist_toggle(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=_make_trade())
        svc = TradeApplicationService(repo=mock_repo)

        resp = await svc.toggle_wishlist(db, "u1", "trade-1")

        assert resp.in_wishlist is True

    async def test_like_missing_trade(self, db, mock_repo):
        mock_repo.get_trade_by_id = AsyncMock(return_value=None)
        svc = TradeApplicationService(repo=mock_repo)
        with pytest.raises(TradeNotFoundError):
            await svc.toggle_like(db, "u1", "nope")
