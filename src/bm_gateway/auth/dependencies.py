"""FastAPI dependencies: identity → local user → gates.

Usage in any protected router:
    from src.bm_gateway.auth.dependencies import get_current_user, require_verified

    @router.post("/trades")
    async def create(user: UserModel = Depends(require_verified)):
        ...

Each dependency returns the resolved object; handlers thread it through to
services explicitly (user id as a plain argument).
"""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.bm_common.database import get_db_session
from src.bm_common.errors import (
    AccountDisabledError,
    AdminRequiredError,
    UnauthenticatedError,
    UserNotSyncedError,
    VerificationRequiredError,
)
from src.bm_gateway.auth.identity import IdentityClaims, IdentityVerifier
from src.bm_gateway.user.db_models import UserModel
from src.bm_gateway.user.service import UserService

# auto_error=False so a missing header maps to our 401 envelope, not FastAPI's 403
_bearer_scheme = HTTPBearer(auto_error=False)
_user_service = UserService()


def get_identity_verifier(request: Request) -> IdentityVerifier:
    """The long-lived verifier built at startup (see src/main.py)."""
    return request.app.state.identity_verifier  # type: ignore[no-any-return]


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> IdentityClaims:
    """Verify the Bearer token. Raises 401 if missing, malformed or invalid."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise UnauthenticatedError("No authorization token provided")
    return await verifier.verify(credentials.credentials)


async def get_current_user(
    identity: IdentityClaims = Depends(get_identity),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    """Resolve the local user for the verified identity.

    Raises 404 (UserNotSyncedError) if the identity was never synced,
    403 (AccountDisabledError) if the account is disabled.
    """
    user = await _user_service.get_by_external_id(identity.subject, db)
    if user is None:
        raise UserNotSyncedError()
    if not user.is_active:
        raise AccountDisabledError()
    return user


async def require_verified(
    current_user: UserModel = Depends(get_current_user),
) -> UserModel:
    """Gate for mutating trade/message operations."""
    if not current_user.can_trade():
        raise VerificationRequiredError(current_user.verification_status)
    return current_user


async def require_admin(
    current_user: UserModel = Depends(get_current_user),
) -> UserModel:
    if not current_user.is_admin:
        raise AdminRequiredError()
    return current_user
