"""Pydantic request/response schemas for the user and auth endpoints.

All responses are wrapped in ApiResponse at the router layer.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from src.bm_gateway.user.db_models import UserModel


class AddressIn(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    phone: str | None = Field(None, max_length=32)
    address: AddressIn | None = None
    interests: list[str] = Field(default_factory=list)
    offerings: list[str] = Field(default_factory=list)


class SyncUserRequest(BaseModel):
    email: EmailStr
    name: str | None = Field(None, max_length=128)
    phone: str | None = Field(None, max_length=32)


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    phone: str | None = Field(None, max_length=32)
    address: AddressIn | None = None
    interests: list[str] | None = None
    offerings: list[str] | None = None
    profile_image: str | None = Field(None, max_length=1024)


class ReviewVerificationRequest(BaseModel):
    decision: Literal["approved", "rejected"]
    rejection_reason: str | None = Field(None, max_length=500)


class UserSummary(BaseModel):
    """Minimal user info embedded in auth responses."""

    id: str
    name: str | None
    email: str
    is_verified: bool
    role: str
    trade_points: int

    @classmethod
    def from_model(cls, user: UserModel) -> "UserSummary":
        return cls(
            id=str(user.id),
            name=user.name,
            email=user.email,
            is_verified=bool(user.is_verified),
            role=user.role,
            trade_points=user.trade_points or 0,
        )


class RatingOut(BaseModel):
    average: float
    count: int


class VerificationOut(BaseModel):
    status: str
    submitted_at: datetime | None
    reviewed_at: datetime | None
    rejection_reason: str | None


class UserProfile(BaseModel):
    id: str
    external_id: str
    name: str | None
    email: str
    phone: str | None
    address: dict[str, str | None]
    interests: list[str]
    offerings: list[str]
    trade_points: int
    rating: RatingOut
    is_verified: bool
    verification: VerificationOut
    role: str
    profile_image: str | None
    created_at: datetime | None

    @classmethod
    def from_model(cls, user: UserModel) -> "UserProfile":
        return cls(
            id=str(user.id),
            external_id=user.external_id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            address=user.address or {},
            interests=list(user.interests or []),
            offerings=list(user.offerings or []),
            trade_points=user.trade_points or 0,
            rating=RatingOut(
                average=float(user.rating_average or 0), count=user.rating_count or 0
            ),
            is_verified=bool(user.is_verified),
            verification=VerificationOut(
                status=user.verification_status,
                submitted_at=user.verification_submitted_at,
                reviewed_at=user.verification_reviewed_at,
                rejection_reason=user.verification_rejection_reason,
            ),
            role=user.role,
            profile_image=user.profile_image,
            created_at=user.created_at,
        )
