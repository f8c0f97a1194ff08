"""User domain service: identity sync, registration, profile, verification.

Local users mirror identities issued by the external provider; the
provider's subject id is stored as `external_id`. Every method commits its
own unit of work on the injected AsyncSession.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.bm_common.datetime_utils import utc_now
from src.bm_common.enums import UserRole, VerificationStatus
from src.bm_common.errors import (
    InvalidVerificationTransitionError,
    UserExistsError,
    UserNotFoundError,
    UserNotSyncedError,
)
from src.bm_gateway.auth.identity import IdentityClaims
from src.bm_gateway.user.db_models import UserModel
from src.bm_gateway.user.schemas import (
    RegisterRequest,
    ReviewVerificationRequest,
    SyncUserRequest,
    UpdateProfileRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "Trader"
# explicit null on these means "leave unchanged"
_KEEP_ON_NULL = frozenset({"name", "interests", "offerings"})


class UserService:
    """Stateless service — instantiate once, reuse across requests."""

    async def get_by_external_id(self, external_id: str, db: AsyncSession) -> UserModel | None:
        result = await db.execute(select(UserModel).where(UserModel.external_id == external_id))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: str, db: AsyncSession) -> UserModel | None:
        try:
            uid = uuid.UUID(str(user_id))
        except ValueError:
            return None
        result = await db.execute(select(UserModel).where(UserModel.id == uid))
        return result.scalar_one_or_none()

    async def register(
        self, identity: IdentityClaims, req: RegisterRequest, db: AsyncSession
    ) -> UserModel:
        """Create the local record for a new identity; duplicates are rejected."""
        if await self.get_by_external_id(identity.subject, db) is not None:
            raise UserExistsError()

        user = UserModel(
            external_id=identity.subject,
            email=req.email.lower(),
            name=req.name,
            phone=req.phone,
            address=req.address.model_dump() if req.address else {},
            interests=req.interests,
            offerings=req.offerings,
            trade_points=settings.STARTING_TRADE_POINTS,
            is_verified=False,
            verification_status=VerificationStatus.PENDING.value,
            role=UserRole.USER.value,
            is_active=True,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # Same subject or email inserted concurrently (DB UNIQUE is the final guard)
            await db.rollback()
            raise UserExistsError() from None
        await db.refresh(user)
        logger.info("User %s registered for subject %s", user.id, identity.subject)
        return user

    async def sync(
        self, identity: IdentityClaims, req: SyncUserRequest, db: AsyncSession
    ) -> tuple[UserModel, bool]:
        """Idempotent create-if-absent. Returns (user, created)."""
        existing = await self.get_by_external_id(identity.subject, db)
        if existing is not None:
            return existing, False

        user = UserModel(
            external_id=identity.subject,
            email=req.email.lower(),
            name=req.name or DEFAULT_DISPLAY_NAME,
            phone=req.phone,
            address={},
            interests=[],
            offerings=[],
            trade_points=settings.STARTING_TRADE_POINTS,
            is_verified=False,
            verification_status=VerificationStatus.PENDING.value,
            role=UserRole.USER.value,
            is_active=True,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            existing = await self.get_by_external_id(identity.subject, db)
            if existing is None:
                # Email taken by a different identity
                raise UserExistsError() from None
            return existing, False
        await db.refresh(user)
        logger.info("User %s synced from subject %s", user.id, identity.subject)
        return user, True

    async def login(self, identity: IdentityClaims, db: AsyncSession) -> UserModel:
        user = await self.get_by_external_id(identity.subject, db)
        if user is None:
            raise UserNotSyncedError()
        user.last_login = utc_now()
        await db.commit()
        return user

    async def update_profile(
        self, user: UserModel, req: UpdateProfileRequest, db: AsyncSession
    ) -> UserModel:
        changes = req.model_dump(exclude_unset=True)
        for name, value in changes.items():
            if value is None and name in _KEEP_ON_NULL:
                continue
            if name == "address":
                value = value or {}
            setattr(user, name, value)
        user.updated_at = utc_now()
        try:
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return user

    async def submit_verification(self, user: UserModel, db: AsyncSession) -> UserModel:
        if user.verification_status == VerificationStatus.APPROVED.value:
            raise InvalidVerificationTransitionError("Account is already verified")
        user.verification_status = VerificationStatus.UNDER_REVIEW.value
        user.verification_submitted_at = utc_now()
        user.verification_rejection_reason = None
        await db.commit()
        logger.info("User %s submitted verification", user.id)
        return user

    async def review_verification(
        self,
        reviewer: UserModel,
        user_id: str,
        req: ReviewVerificationRequest,
        db: AsyncSession,
    ) -> UserModel:
        user = await self.get_by_id(user_id, db)
        if user is None:
            raise UserNotFoundError(user_id)

        approved = req.decision == VerificationStatus.APPROVED.value
        user.verification_status = req.decision
        user.is_verified = approved
        user.verification_rejection_reason = None if approved else req.rejection_reason
        user.verification_reviewed_at = utc_now()
        user.verification_reviewed_by = reviewer.id
        await db.commit()
        logger.info("User %s verification %s by %s", user.id, req.decision, reviewer.id)
        return user
