"""Bearer-token verification against the external identity provider.

Tokens are issued by the provider (Clerk-style session JWTs signed with
RS256). We never mint tokens: we fetch the provider's JWKS, verify the
signature, expiry and (optionally) issuer/audience, and trust `sub`.

One IdentityVerifier is built at startup and stored on app.state; request
handlers receive it through the get_identity_verifier dependency so tests can
swap in a verifier backed by a static JWKS.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from jose import JWTError, jwt

from config.settings import Settings
from src.bm_common.errors import UnauthenticatedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityClaims:
    """Verified identity extracted from a bearer token."""

    subject: str
    session_id: str | None = None


class IdentityVerifier:
    def __init__(
        self,
        jwks_url: str | None = None,
        *,
        jwks: dict[str, Any] | None = None,
        algorithms: list[str] | None = None,
        issuer: str | None = None,
        audience: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        if jwks_url is None and jwks is None:
            raise ValueError("IdentityVerifier needs a jwks_url or a static jwks")
        self._jwks_url = jwks_url
        self._jwks = jwks
        self._algorithms = algorithms or ["RS256"]
        self._issuer = issuer
        self._audience = audience
        self._http = http_client
        self._owns_http = http_client is None and jwks_url is not None
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityVerifier":
        return cls(
            settings.IDP_JWKS_URL,
            algorithms=settings.IDP_ALGORITHMS,
            issuer=settings.IDP_ISSUER,
            audience=settings.IDP_AUDIENCE,
            timeout_seconds=settings.IDP_HTTP_TIMEOUT_SECONDS,
        )

    async def verify(self, token: str) -> IdentityClaims:
        """Verify `token` and return its claims. Raises UnauthenticatedError."""
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            raise UnauthenticatedError("Malformed bearer token") from None

        jwks = await self._get_jwks()
        if not self._has_key(jwks, header.get("kid")) and self._jwks_url is not None:
            # Provider may have rotated keys since the last fetch
            jwks = await self._get_jwks(refresh=True)

        try:
            payload = jwt.decode(
                token,
                jwks,
                algorithms=self._algorithms,  # Explicit list prevents algorithm confusion
                issuer=self._issuer,
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except JWTError as exc:
            logger.info("Token verification failed: %s", exc)
            raise UnauthenticatedError("Token verification failed") from None

        subject = payload.get("sub")
        if not subject:
            raise UnauthenticatedError("Token has no subject")
        return IdentityClaims(subject=str(subject), session_id=payload.get("sid"))

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    # ------------------------------------------------------------------

    @staticmethod
    def _has_key(jwks: dict[str, Any], kid: str | None) -> bool:
        if kid is None:
            return True
        return any(k.get("kid") == kid for k in jwks.get("keys", []))

    async def _get_jwks(self, refresh: bool = False) -> dict[str, Any]:
        if self._jwks is not None and not refresh:
            return self._jwks
        if self._jwks_url is None:
            return self._jwks or {"keys": []}

        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
        try:
            resp = await self._http.get(self._jwks_url)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("JWKS fetch from %s failed: %s", self._jwks_url, exc)
            if self._jwks is not None:
                return self._jwks
            raise UnauthenticatedError("Identity provider unavailable") from None
        self._jwks = resp.json()
        return self._jwks
