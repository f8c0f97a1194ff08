"""bm_trade REST endpoints.

GET    /trades                      — filtered, paged listing (public)
GET    /trades/search               — full-text + geo search (public)
GET    /trades/recommendations      — by caller's interests
GET    /trades/wishlist             — trades the caller wishlisted
GET    /trades/mine                 — caller's own trades
GET    /trades/{trade_id}           — detail, view counted after response (public)
POST   /trades                      — create (verified)
PUT    /trades/{trade_id}           — update (verified + owner)
DELETE /trades/{trade_id}           — delete (verified + owner)
POST   /trades/{trade_id}/like      — like toggle
POST   /trades/{trade_id}/wishlist  — wishlist toggle

Static paths are registered before /{trade_id} so they are not captured by it.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.database import get_db_session
from src.bm_common.enums import ItemCondition, TradeCategory, TradeStatus
from src.bm_common.response import ApiResponse, respond
from src.bm_gateway.auth.dependencies import get_current_user, require_verified
from src.bm_gateway.user.db_models import UserModel
from src.bm_trade.application.schemas import (
    CreateTradeRequest,
    TradeResponse,
    UpdateTradeRequest,
)
from src.bm_trade.application.service import DEFAULT_SEARCH_RADIUS_KM, TradeApplicationService
from src.bm_trade.domain.models import TradeFilter

router = APIRouter(prefix="/trades", tags=["trades"])

_service = TradeApplicationService()


@router.get("")
async def list_trades(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    category: TradeCategory | None = Query(None),
    condition: ItemCondition | None = Query(None),
    min_points: int | None = Query(None, ge=0),
    max_points: int | None = Query(None, ge=0),
    status: TradeStatus = Query(TradeStatus.ACTIVE),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    flt = TradeFilter(
        status=status.value,
        category=category.value if category else None,
        condition=condition.value if condition else None,
        min_points=min_points,
        max_points=max_points,
    )
    result = await _service.list_trades(db, flt, page, limit)
    return respond(request, result.model_dump(mode="json"))


@router.get("/search")
async def search_trades(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    q: str | None = Query(None, max_length=200),
    category: TradeCategory | None = Query(None),
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    radius: float = Query(DEFAULT_SEARCH_RADIUS_KM, gt=0, description="Radius in km"),
) -> ApiResponse:
    result = await _service.search_trades(
        db, q, category.value if category else None, lat, lng, radius
    )
    return respond(request, result.model_dump(mode="json"))


@router.get("/recommendations")
async def get_recommendations(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_recommendations(
        db, str(current_user.id), list(current_user.interests or [])
    )
    return respond(request, result.model_dump(mode="json"))


@router.get("/wishlist")
async def get_wishlist(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_wishlist(db, str(current_user.id))
    return respond(request, result.model_dump(mode="json"))


@router.get("/mine")
async def get_my_trades(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    status: TradeStatus | None = Query(None),
) -> ApiResponse:
    result = await _service.get_user_trades(
        db, str(current_user.id), status.value if status else None
    )
    return respond(request, result.model_dump(mode="json"))


@router.get("/{trade_id}")
async def get_trade(
    trade_id: uuid.UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    trade = await _service.get_trade(db, str(trade_id))
    background_tasks.add_task(_service.record_view, str(trade_id))
    return respond(request, TradeResponse(trade=trade).model_dump(mode="json"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_trade(
    request: Request,
    body: CreateTradeRequest,
    current_user: Annotated[UserModel, Depends(require_verified)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    trade = await _service.create_trade(db, str(current_user.id), body)
    return respond(
        request,
        TradeResponse(trade=trade).model_dump(mode="json"),
        message="Trade created successfully",
    )


@router.put("/{trade_id}")
async def update_trade(
    trade_id: uuid.UUID,
    request: Request,
    body: UpdateTradeRequest,
    current_user: Annotated[UserModel, Depends(require_verified)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    trade = await _service.update_trade(db, str(current_user.id), str(trade_id), body)
    return respond(
        request,
        TradeResponse(trade=trade).model_dump(mode="json"),
        message="Trade updated successfully",
    )


@router.delete("/{trade_id}")
async def delete_trade(
    trade_id: uuid.UUID,
    request: Request,
    current_user: Annotated[UserModel, Depends(require_verified)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _service.delete_trade(db, str(current_user.id), str(trade_id))
    return respond(request, message="Trade deleted successfully")


@router.post("/{trade_id}/like")
async def toggle_like(
    trade_id: uuid.UUID,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.toggle_like(db, str(current_user.id), str(trade_id))
    return respond(request, result.model_dump(mode="json"))


@router.post("/{trade_id}/wishlist")
async def toggle_wishlist(
    trade_id: uuid.UUID,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.toggle_wishlist(db, str(current_user.id), str(trade_id))
    return respond(request, result.model_dump(mode="json"))
