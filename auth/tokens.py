"""
auth/tokens.py -- JWT access/refresh token issuing and verification.

Security design decisions:
  JWT: python-jose. Access and refresh tokens are signed under two independent
       SigningConfigs (separate secrets and expiries). Settings refuses to
       start with identical keys, so a refresh token never verifies as an
       access token and vice versa. The "type" claim is checked on top of that.

  Claims: sub (user id as a string, RFC 7519 requires a StringOrURI), type,
       iat, exp and a random jti. The jti makes every issuance unique -- two
       pairs minted for the same user within one second still differ, which
       refresh rotation depends on.

  Verification returns None on any failure -- the route layer turns that into
       a 401. Signing failure is different: it means the server is
       misconfigured and surfaces as TokenSigningError (500).

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from jose.exceptions import JOSEError

from auth.errors import TokenSigningError
from auth.models import TokenPair

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("cinebase.auth.tokens")

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class SigningConfig:
    """Secret material and lifetime for one token class. Never mutated."""

    secret: str
    expire_seconds: int
    algorithm: str = "HS256"


class TokenIssuer:
    """Mint and verify access/refresh JWTs for a user id.

    Usage:
        issuer = TokenIssuer.from_settings(get_settings())
        pair = await issuer.issue(42)
        issuer.verify_refresh_token(pair.refresh_token)   # 42
    """

    def __init__(self, access: SigningConfig, refresh: SigningConfig) -> None:
        self._configs = {ACCESS: access, REFRESH: refresh}

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(
            access=SigningConfig(
                secret=settings.secret_key,
                expire_seconds=settings.access_token_expire_seconds,
                algorithm=settings.jwt_algorithm,
            ),
            refresh=SigningConfig(
                secret=settings.refresh_secret_key,
                expire_seconds=settings.refresh_token_expire_seconds,
                algorithm=settings.jwt_algorithm,
            ),
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    async def issue(self, user_id: int) -> TokenPair:
        """Sign {sub: user_id} under both configs concurrently."""
        access_token, refresh_token = await asyncio.gather(
            asyncio.to_thread(self._sign, user_id, ACCESS),
            asyncio.to_thread(self._sign, user_id, REFRESH),
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def _sign(self, user_id: int, kind: str) -> str:
        cfg = self._configs[kind]
        if not cfg.secret:
            raise TokenSigningError(f"No signing secret configured for {kind} tokens")
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "type": kind,
            "iat": now,
            "exp": now + timedelta(seconds=cfg.expire_seconds),
            "jti": uuid.uuid4().hex,
        }
        try:
            return jwt.encode(claims, cfg.secret, algorithm=cfg.algorithm)
        except JOSEError as exc:
            logger.error("Failed to sign %s token: %s", kind, exc)
            raise TokenSigningError(f"Could not sign {kind} token") from exc

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access_token(self, token: str) -> int | None:
        return self._verify(token, ACCESS)

    def verify_refresh_token(self, token: str) -> int | None:
        """Return the user id carried by a valid refresh token, or None.

        A valid signature is necessary but not sufficient: the caller must
        still check the token against the stored hash (AuthService.
        validate_refresh_token) because rotation invalidates tokens that are
        cryptographically still fine.
        """
        return self._verify(token, REFRESH)

    def _verify(self, token: str, kind: str) -> int | None:
        cfg = self._configs[kind]
        try:
            payload = jwt.decode(token, cfg.secret, algorithms=[cfg.algorithm])
        except JWTError:
            return None
        if payload.get("type") != kind:
            return None
        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            return None
