from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from src.identity.models import User
from src.tenancy.models import Tenant


class TenantOut(BaseModel):
    id: int
    subdomain: str
    custom_domain: Optional[str] = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantOut":
        return cls(id=tenant.id, subdomain=tenant.subdomain, custom_domain=tenant.custom_domain)


class TenantDetailOut(TenantOut):
    owner_user_id: int
    allowed_ips: list[str]
    allowed_ips_valid: bool = True
    allowed_ips_raw: Optional[str] = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantDetailOut":
        """A corrupt stored allowlist is reported as-is; the IP filter already rejects everyone for it."""
        try:
            allowed_ips, valid, raw = tenant.get_allowed_ips(), True, None
        except ValueError:
            allowed_ips, valid, raw = [], False, tenant.allowed_ips
        return cls(
            id=tenant.id,
            subdomain=tenant.subdomain,
            custom_domain=tenant.custom_domain,
            owner_user_id=tenant.owner_user_id,
            allowed_ips=allowed_ips,
            allowed_ips_valid=valid,
            allowed_ips_raw=raw,
        )


class UserOut(BaseModel):
    id: int
    email: str
    is_global_admin: bool

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(id=user.id, email=user.email, is_global_admin=user.is_global_admin)


class LoginFormOut(BaseModel):
    site: TenantOut
    csrf_token: str
    csrf_field: str


class LoginOut(BaseModel):
    user: UserOut
    site: TenantOut
    expires_in: int


class DashboardOut(BaseModel):
    site: TenantOut
    user: UserOut
    access: str
    host_site_id: Optional[int] = None
