"""Users REST endpoints.

POST /users/sync                     — idempotent create-if-absent for the token subject
GET  /users/me (/users/profile)      — full profile of the caller
PUT  /users/me                       — update editable profile fields
POST /users/me/verification          — submit account for review
POST /users/{user_id}/verification   — admin decision (approved / rejected)
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.database import get_db_session
from src.bm_common.response import ApiResponse, respond
from src.bm_gateway.auth.dependencies import get_current_user, get_identity, require_admin
from src.bm_gateway.auth.identity import IdentityClaims
from src.bm_gateway.user.db_models import UserModel
from src.bm_gateway.user.schemas import (
    ReviewVerificationRequest,
    SyncUserRequest,
    UpdateProfileRequest,
    UserProfile,
)
from src.bm_gateway.user.service import UserService

router = APIRouter(prefix="/users", tags=["users"])
_service = UserService()


def _profile(user: UserModel) -> dict:
    return {"user": UserProfile.from_model(user).model_dump(mode="json")}


@router.post("/sync", response_model=ApiResponse)
async def sync_user(
    request: Request,
    response: Response,
    body: SyncUserRequest,
    identity: Annotated[IdentityClaims, Depends(get_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user, created = await _service.sync(identity, body, db)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return respond(
        request,
        _profile(user),
        message="User created successfully" if created else "User already exists",
    )


@router.get("/me", response_model=ApiResponse)
@router.get("/profile", response_model=ApiResponse)
async def get_me(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> ApiResponse:
    return respond(request, _profile(current_user))


@router.put("/me", response_model=ApiResponse)
async def update_me(
    request: Request,
    body: UpdateProfileRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user = await _service.update_profile(current_user, body, db)
    return respond(request, _profile(user), message="Profile updated")


@router.post("/me/verification", response_model=ApiResponse)
async def submit_verification(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user = await _service.submit_verification(current_user, db)
    return respond(request, _profile(user), message="Verification submitted")


@router.post("/{user_id}/verification", response_model=ApiResponse)
async def review_verification(
    user_id: uuid.UUID,
    request: Request,
    body: ReviewVerificationRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user = await _service.review_verification(admin, str(user_id), body, db)
    return respond(request, _profile(user), message=f"Verification {body.decision}")
