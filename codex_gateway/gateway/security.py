"""Request authentication and origin checks for the HTTP transport.

Two modes, selected by AUTH_REQUIRE_OAUTH:
- off: a single static bearer token (AUTH_TOKEN); the principal has no scopes.
- on: an OIDC access token verified against a JWKS; the space-separated
  ``scope`` claim becomes the principal's scopes.
"""

from __future__ import annotations

import json
import secrets
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from jose import JWTError, jwt

from codex_gateway.infra.errors import AuthError

if TYPE_CHECKING:
    from codex_gateway.config.settings import AuthSettings

logger = structlog.get_logger()

_BEARER_PREFIX = "Bearer "
_JWT_ALGORITHMS = ["RS256", "RS384", "RS512", "ES256", "ES384", "ES512"]
_JWKS_REFRESH_COOLDOWN = 30.0  # seconds between refetches triggered by an unknown kid


@dataclass(frozen=True)
class Principal:
    """Authenticated caller. scopes is None when scopes are not in play (static token)."""

    subject: str | None = None
    scopes: frozenset[str] | None = None
    claims: dict[str, Any] = field(default_factory=dict)


class Authenticator:
    def __init__(
        self,
        settings: AuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        jwks_refresh_cooldown: float = _JWKS_REFRESH_COOLDOWN,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._jwks: dict[str, Any] | None = None
        self._jwks_remote = False
        self._jwks_fetched_at = 0.0
        self._refresh_cooldown = jwks_refresh_cooldown

    async def authenticate(self, authorization: str | None) -> Principal:
        """Validate an Authorization header value. Raises AuthError."""
        if not authorization or not authorization.startswith(_BEARER_PREFIX):
            raise AuthError("Missing bearer token", status_code=401)
        token = authorization[len(_BEARER_PREFIX):].strip()

        if not self._settings.require_oauth:
            expected = self._settings.token
            if expected and secrets.compare_digest(token.encode(), expected.encode()):
                return Principal()
            raise AuthError("Invalid token", status_code=403)

        return await self._verify_jwt(token)

    async def _verify_jwt(self, token: str) -> Principal:
        issuer = self._settings.oidc_issuer
        audience = self._settings.oidc_audience
        if not issuer or not audience:
            raise AuthError("OAuth not properly configured", status_code=500)

        jwks = await self._load_jwks()
        try:
            claims = self._decode(token, jwks)
        except JWTError as e:
            if not self._should_refresh(token, jwks):
                logger.warning("jwt_rejected", error=str(e))
                raise AuthError("Invalid token", status_code=403, details=str(e)) from e
            # Signing key rotated upstream: refetch once, then verify again.
            jwks = await self._load_jwks(refresh=True)
            try:
                claims = self._decode(token, jwks)
            except JWTError as retry_error:
                logger.warning("jwt_rejected", error=str(retry_error), jwks_refreshed=True)
                raise AuthError(
                    "Invalid token", status_code=403, details=str(retry_error)
                ) from retry_error

        scope = claims.get("scope")
        scopes = frozenset(scope.split()) if isinstance(scope, str) else frozenset()
        return Principal(subject=claims.get("sub"), scopes=scopes, claims=claims)

    def _decode(self, token: str, jwks: dict[str, Any]) -> dict[str, Any]:
        return jwt.decode(
            token,
            jwks,
            algorithms=_JWT_ALGORITHMS,
            audience=self._settings.oidc_audience,
            issuer=self._settings.oidc_issuer,
        )

    def _should_refresh(self, token: str, jwks: dict[str, Any]) -> bool:
        """True when a remote JWKS lacks the token's kid and the cooldown has passed."""
        if not self._jwks_remote:
            return False
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except JWTError:
            return False
        if kid is None:
            return False
        if kid in {key.get("kid") for key in jwks.get("keys", [])}:
            return False
        return time.monotonic() - self._jwks_fetched_at >= self._refresh_cooldown

    async def _load_jwks(self, *, refresh: bool = False) -> dict[str, Any]:
        """Local JWKS file first, then the remote JWKS URL.

        Cached after first load; ``refresh`` refetches the remote set.
        """
        if self._jwks is not None and not refresh:
            return self._jwks

        path = self._settings.jwks_path
        if not refresh and path.is_file():
            self._jwks = json.loads(path.read_text(encoding="utf-8"))
            logger.info("jwks_loaded", source=str(path))
            return self._jwks

        url = self._settings.oidc_jwks_url
        if not url:
            raise AuthError("No JWKS source configured", status_code=500)

        self._jwks_fetched_at = time.monotonic()
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                response = await client.get(url)
                response.raise_for_status()
                jwks = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("jwks_fetch_failed", url=url, error=str(e))
            raise AuthError("Invalid token", status_code=403, details=str(e)) from e

        self._jwks = jwks
        self._jwks_remote = True
        logger.info("jwks_loaded", source=url, refresh=refresh)
        return jwks


def check_origin(allowed_origins: list[str], origin: str | None) -> None:
    """Reject browser requests from origins outside the allow-list. Empty list = allow all."""
    if not origin or not allowed_origins or origin in allowed_origins:
        return
    raise AuthError("Origin not allowed", status_code=403)
