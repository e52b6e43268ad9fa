import json
from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from src.identity.models import Role
from src.storage import (
    SqlMembershipStore,
    SqlTenantDirectory,
    SqlUserStore,
    create_db_engine,
    create_schema,
    create_session_factory,
)
from src.storage.models import SiteModel, SiteUserModel, UserModel


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    create_schema(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def seeded(session_factory):
    with session_factory() as s:
        s.add_all([
            UserModel(id=1, email="owner@alpha.test", password_hash="x"),
            UserModel(id=2, email="editor@alpha.test", password_hash="x"),
            UserModel(id=3, email="gone@alpha.test", password_hash="x", deleted_at=datetime(2024, 1, 1)),
            UserModel(id=4, email="root@stinkykitty.org", password_hash="x", is_global_admin=True),
        ])
        s.flush()
        s.add_all([
            SiteModel(id=1, subdomain="alpha", owner_user_id=1, custom_domain="alpha-camp.org",
                      allowed_ips=json.dumps(["10.0.0.0/8"])),
            SiteModel(id=2, subdomain="old", owner_user_id=1, deleted_at=datetime(2024, 1, 1)),
        ])
        s.flush()
        s.add_all([
            SiteUserModel(site_id=1, user_id=2, role=Role.EDITOR.value),
            SiteUserModel(site_id=1, user_id=4, role=Role.ADMIN.value, deleted_at=datetime(2024, 1, 1)),
        ])
        s.commit()
    return session_factory


def test_tenant_lookups(seeded):
    directory = SqlTenantDirectory(seeded)
    tenant = directory.find_by_subdomain("alpha")
    assert tenant is not None
    assert tenant.id == 1
    assert tenant.get_allowed_ips() == ["10.0.0.0/8"]
    assert directory.find_by_custom_domain("alpha-camp.org") == tenant
    assert directory.find_by_id(1) == tenant
    assert directory.find_by_subdomain("nope") is None


def test_soft_deleted_tenant_invisible(seeded):
    directory = SqlTenantDirectory(seeded)
    assert directory.find_by_subdomain("old") is None
    assert directory.find_by_id(2) is None


def test_deleted_subdomain_can_be_reused(seeded):
    with seeded() as s:
        s.add(SiteModel(id=3, subdomain="old", owner_user_id=1))
        s.commit()
    assert SqlTenantDirectory(seeded).find_by_subdomain("old").id == 3


def test_active_subdomain_is_unique(seeded):
    with seeded() as s:
        s.add(SiteModel(id=4, subdomain="alpha", owner_user_id=1))
        with pytest.raises(IntegrityError):
            s.commit()


def test_user_lookups(seeded):
    users = SqlUserStore(seeded)
    assert users.find_by_id(1).email == "owner@alpha.test"
    assert users.find_by_email("root@stinkykitty.org").is_global_admin
    assert users.find_by_id(3) is None
    assert users.find_by_email("gone@alpha.test") is None


def test_membership_lookups(seeded):
    memberships = SqlMembershipStore(seeded)
    membership = memberships.find(1, 2)
    assert membership is not None
    assert membership.role is Role.EDITOR
    assert memberships.find(1, 4) is None
    assert memberships.find(2, 2) is None


def test_one_membership_per_pair(seeded):
    with seeded() as s:
        s.add(SiteUserModel(site_id=1, user_id=2, role=Role.ADMIN.value))
        with pytest.raises(IntegrityError):
            s.commit()


def test_removed_member_can_be_added_again(seeded):
    with seeded() as s:
        s.add(SiteUserModel(site_id=1, user_id=4, role=Role.EDITOR.value))
        s.commit()
    membership = SqlMembershipStore(seeded).find(1, 4)
    assert membership is not None
    assert membership.role is Role.EDITOR
