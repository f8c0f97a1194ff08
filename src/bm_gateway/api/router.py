"""Auth API router: register, login, logout, verify-token.

Tokens are minted by the identity provider; these endpoints only bootstrap
and report the local user that mirrors the token subject.

All endpoints return ApiResponse[T]. request_id is read from
request.state (injected by RequestLogMiddleware).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.database import get_db_session
from src.bm_common.response import ApiResponse, respond
from src.bm_gateway.auth.dependencies import get_current_user, get_identity
from src.bm_gateway.auth.identity import IdentityClaims
from src.bm_gateway.user.db_models import UserModel
from src.bm_gateway.user.schemas import RegisterRequest, UserProfile, UserSummary
from src.bm_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="Create the local user for the token subject",
)
async def register(
    request: Request,
    body: RegisterRequest,
    identity: Annotated[IdentityClaims, Depends(get_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user = await _service.register(identity, body, db)
    return respond(
        request,
        {"user": UserProfile.from_model(user).model_dump(mode="json")},
        message="User registered successfully",
    )


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Record a login for the token subject",
)
async def login(
    request: Request,
    identity: Annotated[IdentityClaims, Depends(get_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user = await _service.login(identity, db)
    return respond(
        request,
        {"user": UserSummary.from_model(user).model_dump(mode="json")},
        message="Login successful",
    )


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Acknowledge logout (sessions live at the identity provider)",
)
async def logout(
    request: Request,
    identity: Annotated[IdentityClaims, Depends(get_identity)],
) -> ApiResponse:
    return respond(request, message="Logout successful")


@router.get(
    "/verify-token",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Validate the bearer token and return the local user",
)
async def verify_token(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> ApiResponse:
    return respond(
        request,
        {"valid": True, "user": UserSummary.from_model(current_user).model_dump(mode="json")},
    )
