"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Tokens are signed locally with an HS256 key; the app's IdentityVerifier is
overridden with one that trusts that key, so no identity provider is needed.
Pre-condition: PostgreSQL + Redis running and `alembic upgrade head` applied.
"""

import base64
import time
import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import text

from src.bm_common.database import engine
from src.bm_gateway.auth.dependencies import get_identity_verifier
from src.bm_gateway.auth.identity import IdentityVerifier
from src.main import app

_SECRET = "integration-signing-secret-0123456789"
_KID = "integration"


def bearer_for(subject: str) -> dict[str, str]:
    token = jwt.encode(
        {"sub": subject, "exp": int(time.time()) + 600},
        _SECRET, algorithm="HS256", headers={"kid": _KID},
    )
    return {"Authorization": f"Bearer {token}"}


async def approve_user(email: str) -> None:
    """Mark a synced user as verified directly in the database."""
    async with engine.begin() as conn:
        await conn.execute(
            text("""
                UPDATE users SET is_verified = TRUE, verification_status = 'approved'
                WHERE email = :email
            """),
            {"email": email},
        )


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    k = base64.urlsafe_b64encode(_SECRET.encode()).rstrip(b"=").decode()
    verifier = IdentityVerifier(
        jwks={"keys": [{"kty": "oct", "kid": _KID, "k": k, "alg": "HS256"}]},
        algorithms=["HS256"],
    )
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(loop_scope="session")
async def new_trader(client: AsyncClient):
    """Factory: sync a fresh identity, optionally approve it, return (headers, user)."""

    async def _make(verified: bool = True) -> tuple[dict[str, str], dict]:
        uid = uuid.uuid4().hex[:10]
        headers = bearer_for(f"user_{uid}")
        email = f"trader_{uid}@example.com"
        resp = await client.post(
            "/api/v1/users/sync", json={"email": email, "name": f"Trader {uid}"}, headers=headers
        )
        assert resp.status_code == 201, resp.text
        if verified:
            await approve_user(email)
        return headers, resp.json()["data"]["user"]

    return _make
