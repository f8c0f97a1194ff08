"""Unit tests for bm_trade request/response schemas."""
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from src.bm_common.enums import ItemCondition, TradeCategory, TradeType
from src.bm_trade.application.schemas import (
    CreateTradeRequest,
    TradeOut,
    UpdateTradeRequest,
)
from src.bm_trade.domain.models import Location, OwnerSummary, Trade
from src.bm_trade.domain.valuation import Valuation

_VALID = {
    "title": "Road bike",
    "description": "Aluminium frame, 54cm",
    "category": "Sports",
    "valuation": {"base_value": 300},
}


class TestCreateTradeRequest:
    def test_defaults(self) -> None:
        req = CreateTradeRequest(**_VALID)
        assert req.condition is ItemCondition.GOOD
        assert req.trade_type is TradeType.PRODUCT
        assert req.valuation.currency == "USD"
        assert req.valuation.age_months == 0
        assert req.valuation.quality == 5
        assert req.images == []
        assert req.location is None

    def test_client_trade_points_dropped(self) -> None:
        req = CreateTradeRequest(**_VALID, trade_points=99999)
        assert "trade_points" not in req.model_dump()

    def test_multi_word_category(self) -> None:
        req = CreateTradeRequest(**{**_VALID, "category": "Home Decor"})
        assert req.category is TradeCategory.HOME_DECOR

    @pytest.mark.parametrize(
        "override",
        [
            {"title": ""},
            {"title": "x" * 101},
            {"description": "x" * 1001},
            {"category": "Spaceships"},
            {"condition": "mint"},
            {"valuation": {"base_value": -1}},
            {"valuation": {"base_value": 10, "quality": 11}},
            {"valuation": {"base_value": 10, "quality": 0}},
            {"valuation": {"base_value": 10, "age_months": -3}},
            {"location": {"city": "Porto", "latitude": 41.15}},
            {"location": {"longitude": -8.61}},
        ],
    )
    def test_rejects_invalid(self, override: dict) -> None:
        with pytest.raises(ValidationError):
            CreateTradeRequest(**{**_VALID, **override})


class TestUpdateTradeRequest:
    def test_only_sent_fields_become_changes(self) -> None:
        req = UpdateTradeRequest(description="New text")
        assert req.to_changes() == {"description": "New text"}

    def test_enums_become_plain_values(self) -> None:
        changes = UpdateTradeRequest(condition="fair", category="Art", status="completed").to_changes()
        assert changes == {"condition": "fair", "category": "Art", "status": "completed"}

    def test_valuation_converted_to_domain(self) -> None:
        changes = UpdateTradeRequest(valuation={"base_value": 50, "quality": 7}).to_changes()
        assert changes["valuation"] == Valuation(base_value=50, quality=7)

    def test_subcategory_can_be_cleared(self) -> None:
        assert UpdateTradeRequest(subcategory=None).to_changes() == {"subcategory": None}

    def test_explicit_null_title_ignored(self) -> None:
        assert UpdateTradeRequest(title=None).to_changes() == {}

    def test_unknown_fields_ignored(self) -> None:
        req = UpdateTradeRequest(trade_points=5, owner_id="x")
        assert req.to_changes() == {}

    def test_location_needs_both_coordinates(self) -> None:
        with pytest.raises(ValidationError):
            UpdateTradeRequest(location={"latitude": 41.15})

    def test_location_with_both_coordinates(self) -> None:
        changes = UpdateTradeRequest(location={"latitude": 41.15, "longitude": -8.61}).to_changes()
        assert changes["location"] == Location(latitude=41.15, longitude=-8.61)

    def test_location_without_coordinates(self) -> None:
        changes = UpdateTradeRequest(location={"city": "Porto"}).to_changes()
        assert changes["location"].latitude is None


class TestTradeOut:
    def test_from_domain(self) -> None:
        trade = Trade(
            id="t1", owner_id="o1", title="Lamp", description="Brass",
            category="Home Decor", condition="good", trade_type="product",
            valuation=Valuation(base_value=40), trade_points=30, status="active",
            expires_at=datetime.now(UTC),
            location=Location(city="Porto"),
            owner=OwnerSummary(id="o1", name="Ana", profile_image=None,
                               rating_average=4.5, rating_count=2),
            distance_m=1234.4,
        )
        out = TradeOut.from_domain(trade)
        assert out.owner is not None and out.owner.name == "Ana"
        assert out.location.city == "Porto"
        assert out.preferences.trade_type.value == "both"
        assert out.distance_km == pytest.approx(1.234)

    def test_no_distance_when_not_geo(self) -> None:
        trade = Trade(
            id="t1", owner_id="o1", title="Lamp", description="Brass",
            category="Other", condition="good", trade_type="product",
            valuation=Valuation(base_value=40), trade_points=30, status="active",
            expires_at=datetime.now(UTC),
        )
        out = TradeOut.from_domain(trade)
        assert out.distance_km is None
        assert out.owner is None
