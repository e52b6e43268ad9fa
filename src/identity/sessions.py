"""
Signed session tokens (HS256 JWT) carried in the ``stinky_token`` cookie.

Claims shape: ``{user_id, email, site_id, is_global_admin, exp, iat, nbf}``.

Every validation failure surfaces as ``UnauthenticatedError``; the specific
``reason`` is for logs only and must never reach the client.
"""
from __future__ import annotations

import time
from typing import Callable

import jwt

from src.identity.models import SessionClaims, User
from src.shared.exceptions import ConfigurationError, UnauthenticatedError, UnauthenticatedReason
from src.tenancy.models import Tenant

SESSION_COOKIE_NAME = "stinky_token"
SESSION_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["user_id", "site_id", "exp", "iat", "nbf"]


class SessionAuthenticator:
    def __init__(
        self,
        secret: str,
        expiry_hours: int = 8,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ConfigurationError("SessionAuthenticator requires a signing secret")
        self._secret = secret
        self._expiry_seconds = (expiry_hours if expiry_hours > 0 else 8) * 3600
        self._clock = clock

    @property
    def expiry_seconds(self) -> int:
        return self._expiry_seconds

    def issue(self, user: User, tenant: Tenant) -> str:
        now = int(self._clock())
        claims = SessionClaims(
            user_id=user.id,
            email=user.email,
            tenant_id=tenant.id,
            is_global_admin=user.is_global_admin,
            issued_at=now,
            not_before=now,
            expires_at=now + self._expiry_seconds,
        )
        return jwt.encode(claims.to_payload(), self._secret, algorithm=SESSION_ALGORITHM)

    def validate(self, token: str) -> SessionClaims:
        """
        Verify signature and time window and return the claims.

        Only HS256 is accepted; a token whose header names any other
        algorithm (including ``none``) is rejected before the payload is
        trusted.

        Raises:
            UnauthenticatedError: on any failure
        """
        if not token:
            raise UnauthenticatedError(UnauthenticatedReason.EMPTY)

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[SESSION_ALGORITHM],
                options={
                    "require": _REQUIRED_CLAIMS,
                    # time claims are checked below against the injected clock
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                },
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as exc:
            raise UnauthenticatedError(UnauthenticatedReason.BAD_SIGNATURE) from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthenticatedError(UnauthenticatedReason.MALFORMED) from exc

        try:
            claims = SessionClaims.from_payload(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise UnauthenticatedError(UnauthenticatedReason.MALFORMED) from exc

        now = self._clock()
        if now >= claims.expires_at:
            raise UnauthenticatedError(UnauthenticatedReason.EXPIRED)
        if now < claims.not_before:
            raise UnauthenticatedError(UnauthenticatedReason.NOT_YET_VALID)
        return claims
