"""
Composition root: builds every admission collaborator from Settings once per
application instance. Route handlers reach it through ``get_container``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from sqlalchemy.engine import Engine

from src.admission.csrf import CSRFGuard
from src.admission.ip_filter import IPFilter
from src.admission.pipeline import RequestPipeline
from src.admission.policy import PolicyTable, default_policies
from src.admission.rate_limiter import RateLimiter
from src.config import Settings
from src.identity.access import AccessController
from src.identity.passwords import PasswordHasher
from src.identity.ports import MembershipStore, UserStore
from src.identity.sessions import SessionAuthenticator
from src.shared.logging import get_logger
from src.tenancy.ports import TenantDirectory
from src.tenancy.resolver import TenantResolver

logger = get_logger(__name__)


@dataclass
class AppContainer:
    settings: Settings
    tenants: TenantDirectory
    users: UserStore
    memberships: MembershipStore
    resolver: TenantResolver
    sessions: SessionAuthenticator
    access: AccessController
    passwords: PasswordHasher
    pipeline: RequestPipeline
    engine: Optional[Engine] = None

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        tenants: TenantDirectory,
        users: UserStore,
        memberships: MembershipStore,
        policies: Optional[PolicyTable] = None,
        monotonic: Optional[Callable[[], float]] = None,
        wall_clock: Optional[Callable[[], float]] = None,
        engine: Optional[Engine] = None,
        passwords: Optional[PasswordHasher] = None,
    ) -> "AppContainer":
        """
        Raises ConfigurationError when no signing secret is configured.
        ``monotonic`` / ``wall_clock`` are injectable for tests.
        """
        clock_kwargs = {"clock": monotonic} if monotonic else {}
        resolver = TenantResolver(tenants, settings.BASE_DOMAIN, **clock_kwargs)
        sessions = SessionAuthenticator(
            settings.resolve_signing_secret(),
            settings.session_expiry_hours,
            **({"clock": wall_clock} if wall_clock else {}),
        )
        access = AccessController(memberships)

        # every rate-limited path shares one login limiter
        login_limiter = RateLimiter(
            settings.LOGIN_RATE_LIMIT_CAPACITY,
            settings.LOGIN_RATE_LIMIT_INTERVAL_SECONDS,
            **clock_kwargs,
        )
        rate_limits: Dict[str, RateLimiter] = {path: login_limiter for path in settings.RATE_LIMITED_PATHS}

        pipeline = RequestPipeline(
            resolver=resolver,
            tenants=tenants,
            ip_filter=IPFilter(settings.BLOCKED_IPS),
            csrf=CSRFGuard(),
            sessions=sessions,
            users=users,
            access=access,
            policies=policies or default_policies(),
            rate_limits=rate_limits,
        )
        logger.info(
            "container_built",
            base_domain=settings.BASE_DOMAIN,
            rate_limited_paths=list(rate_limits),
            blocked_ranges=len(settings.BLOCKED_IPS),
        )
        return cls(
            settings=settings,
            tenants=tenants,
            users=users,
            memberships=memberships,
            resolver=resolver,
            sessions=sessions,
            access=access,
            passwords=passwords or PasswordHasher(),
            pipeline=pipeline,
            engine=engine,
        )
