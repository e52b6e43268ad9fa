from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class Role(str, Enum):
    """
    Per-site membership roles. Any role grants access to the site; the
    distinction matters only to the page-editing surfaces.
    """
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"


@dataclass(frozen=True)
class User:
    id: int
    email: str
    password_hash: str = ""
    # Global admins bypass every per-site check. The flag is granted by an
    # operator, never by a membership, and cannot be scoped to a site.
    is_global_admin: bool = False


@dataclass(frozen=True)
class Membership:
    tenant_id: int
    user_id: int
    role: Role


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token. Timestamps are epoch seconds."""
    user_id: int
    email: str
    tenant_id: int
    is_global_admin: bool
    issued_at: int
    not_before: int
    expires_at: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "site_id": self.tenant_id,
            "is_global_admin": self.is_global_admin,
            "exp": self.expires_at,
            "iat": self.issued_at,
            "nbf": self.not_before,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SessionClaims":
        """Raises KeyError/TypeError/ValueError on a payload of the wrong shape."""
        user_id = payload["user_id"]
        tenant_id = payload["site_id"]
        is_global_admin = payload.get("is_global_admin", False)
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise TypeError("user_id must be an integer")
        if not isinstance(tenant_id, int) or isinstance(tenant_id, bool):
            raise TypeError("site_id must be an integer")
        if not isinstance(is_global_admin, bool):
            raise TypeError("is_global_admin must be a boolean")
        return cls(
            user_id=user_id,
            email=str(payload.get("email", "")),
            tenant_id=tenant_id,
            is_global_admin=is_global_admin,
            issued_at=int(payload["iat"]),
            not_before=int(payload["nbf"]),
            expires_at=int(payload["exp"]),
        )
