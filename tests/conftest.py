import json
from typing import Dict, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from src.config import SIGNING_SECRET_ENV, Settings
from src.container import AppContainer
from src.identity.models import Membership, Role, User
from src.identity.passwords import PasswordHasher
from src.identity.ports import MembershipStore, UserStore
from src.main import create_app
from src.tenancy.models import Tenant
from src.tenancy.ports import TenantDirectory

BASE_DOMAIN = "stinkykitty.org"
CLIENT_IP = "203.0.113.5"
PASSWORD = "correct horse battery staple"
SECRET = "test-signing-secret"


class FakeClock:
    """Manually advanced time source; never sleeps."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryTenantDirectory(TenantDirectory):
    def __init__(self, *tenants: Tenant):
        self.tenants: Dict[int, Tenant] = {t.id: t for t in tenants}
        self.calls = 0

    def add(self, tenant: Tenant) -> None:
        self.tenants[tenant.id] = tenant

    def find_by_subdomain(self, subdomain: str) -> Optional[Tenant]:
        self.calls += 1
        return next((t for t in self.tenants.values() if t.subdomain == subdomain), None)

    def find_by_custom_domain(self, domain: str) -> Optional[Tenant]:
        self.calls += 1
        return next((t for t in self.tenants.values() if t.custom_domain == domain), None)

    def find_by_id(self, tenant_id: int) -> Optional[Tenant]:
        return self.tenants.get(tenant_id)


class InMemoryUserStore(UserStore):
    def __init__(self, *users: User):
        self.users: Dict[int, User] = {u.id: u for u in users}

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email), None)


class InMemoryMembershipStore(MembershipStore):
    def __init__(self, *memberships: Membership):
        self.rows: Dict[Tuple[int, int], Membership] = {(m.tenant_id, m.user_id): m for m in memberships}

    def find(self, tenant_id: int, user_id: int) -> Optional[Membership]:
        return self.rows.get((tenant_id, user_id))


@pytest.fixture(autouse=True)
def _no_secret_override(monkeypatch):
    monkeypatch.delenv(SIGNING_SECRET_ENV, raising=False)


@pytest.fixture
def settings():
    return Settings(
        JWT_SECRET=SECRET,
        BASE_DOMAIN=BASE_DOMAIN,
        ENVIRONMENT="dev",
        LOG_FORMAT="console",
        LOG_LEVEL="WARNING",
        DATABASE_URL="sqlite://",
        _env_file=None,
    )


@pytest.fixture(scope="session")
def hasher():
    # minimal argon2 cost keeps the suite fast
    return PasswordHasher(memory_cost=8, time_cost=1, parallelism=1)


@pytest.fixture(scope="session")
def password_hash(hasher):
    return hasher.hash(PASSWORD)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeClock()


@pytest.fixture
def alpha():
    return Tenant(id=1, subdomain="alpha", owner_user_id=1)


@pytest.fixture
def beta():
    return Tenant(
        id=2,
        subdomain="beta",
        owner_user_id=2,
        custom_domain="beta-camp.org",
        allowed_ips=json.dumps(["203.0.113.0/24"]),
    )


@pytest.fixture
def gamma():
    return Tenant(id=3, subdomain="gamma", owner_user_id=2, allowed_ips=json.dumps(["10.0.0.0/8"]))


@pytest.fixture
def tenants(alpha, beta, gamma):
    return InMemoryTenantDirectory(alpha, beta, gamma)


@pytest.fixture
def users(password_hash):
    return InMemoryUserStore(
        User(id=1, email="owner@alpha.test", password_hash=password_hash),
        User(id=2, email="owner@beta.test", password_hash=password_hash),
        User(id=3, email="editor@alpha.test", password_hash=password_hash),
        User(id=4, email="root@stinkykitty.org", password_hash=password_hash, is_global_admin=True),
        User(id=5, email="stranger@example.test", password_hash=password_hash),
    )


@pytest.fixture
def memberships():
    return InMemoryMembershipStore(Membership(tenant_id=1, user_id=3, role=Role.EDITOR))


@pytest.fixture
def container(settings, tenants, users, memberships, clock, wall_clock, hasher):
    return AppContainer.build(
        settings,
        tenants=tenants,
        users=users,
        memberships=memberships,
        monotonic=clock,
        wall_clock=wall_clock,
        passwords=hasher,
    )


@pytest.fixture
def app(container):
    return create_app(container=container)


@pytest.fixture
def client_factory(app):
    """Build extra clients for other hosts / client addresses."""
    def _make(host: str = f"alpha.{BASE_DOMAIN}", ip: str = CLIENT_IP, **kwargs) -> TestClient:
        return TestClient(app, base_url=f"http://{host}", headers={"X-Forwarded-For": ip}, **kwargs)
    return _make


@pytest.fixture
def client(client_factory):
    with client_factory() as c:
        yield c


@pytest.fixture
def csrf_token():
    def _fetch(client: TestClient) -> str:
        resp = client.get("/admin/login")
        assert resp.status_code == 200
        return resp.json()["csrf_token"]
    return _fetch


@pytest.fixture
def login_as(csrf_token):
    """POST /admin/login with a fresh CSRF token; the session cookie lands in the client jar."""
    def _login(client: TestClient, email: str, password: str = PASSWORD):
        token = csrf_token(client)
        return client.post(
            "/admin/login",
            data={"email": email, "password": password},
            headers={"X-CSRF-Token": token},
        )
    return _login
