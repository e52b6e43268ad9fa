"""
SQLAlchemy-backed implementations of the tenancy and identity ports.

Each lookup opens and closes its own session; errors propagate to the caller.
Soft-deleted rows (``deleted_at`` set) are invisible to every lookup.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.identity.models import Membership, Role, User
from src.identity.ports import MembershipStore, UserStore
from src.storage.models import SiteModel, SiteUserModel, UserModel
from src.tenancy.models import Tenant
from src.tenancy.ports import TenantDirectory


def _to_tenant(row: SiteModel) -> Tenant:
    return Tenant(
        id=row.id,
        subdomain=row.subdomain,
        owner_user_id=row.owner_user_id,
        custom_domain=row.custom_domain,
        allowed_ips=row.allowed_ips or "",
    )


def _to_user(row: UserModel) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        is_global_admin=bool(row.is_global_admin),
    )


class SqlTenantDirectory(TenantDirectory):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _one(self, *criteria) -> Optional[Tenant]:
        stmt = select(SiteModel).where(SiteModel.deleted_at.is_(None), *criteria)
        with self._session_factory() as session:
            row = session.execute(stmt).scalar_one_or_none()
            return _to_tenant(row) if row is not None else None

    def find_by_subdomain(self, subdomain: str) -> Optional[Tenant]:
        return self._one(SiteModel.subdomain == subdomain)

    def find_by_custom_domain(self, domain: str) -> Optional[Tenant]:
        return self._one(SiteModel.custom_domain == domain)

    def find_by_id(self, tenant_id: int) -> Optional[Tenant]:
        return self._one(SiteModel.id == tenant_id)


class SqlUserStore(UserStore):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _one(self, *criteria) -> Optional[User]:
        stmt = select(UserModel).where(UserModel.deleted_at.is_(None), *criteria)
        with self._session_factory() as session:
            row = session.execute(stmt).scalar_one_or_none()
            return _to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self._one(UserModel.id == user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return self._one(UserModel.email == email)


class SqlMembershipStore(MembershipStore):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find(self, tenant_id: int, user_id: int) -> Optional[Membership]:
        stmt = select(SiteUserModel).where(
            SiteUserModel.site_id == tenant_id,
            SiteUserModel.user_id == user_id,
            SiteUserModel.deleted_at.is_(None),
        )
        with self._session_factory() as session:
            row = session.execute(stmt).scalar_one_or_none()
            if row is None:
                return None
            return Membership(tenant_id=row.site_id, user_id=row.user_id, role=Role(row.role))
