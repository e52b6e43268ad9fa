from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from src.admin.routes import public_router, router as admin_router
from src.admission.middleware import AdmissionMiddleware
from src.config import Settings, get_settings
from src.container import AppContainer
from src.identity.ports import MembershipStore, UserStore
from src.shared.exceptions import register_exception_handlers  # central mapping
from src.shared.health import router as health_router
from src.shared.http.middleware.logging_middleware import LoggingMiddleware
from src.shared.http.middleware.request_id_middleware import RequestIdMiddleware
from src.shared.http.middleware.security_middleware import HTTPSRedirectMiddleware, SecurityHeadersMiddleware
from src.shared.logging import get_logger, setup_logging
from src.storage import (
    SqlMembershipStore,
    SqlTenantDirectory,
    SqlUserStore,
    create_db_engine,
    create_schema,
    create_session_factory,
)
from src.tenancy.ports import TenantDirectory
from src.workers.bucket_sweeper import BucketSweeperWorker

logger = get_logger(__name__)


def _build_container(
    settings: Settings,
    tenants: Optional[TenantDirectory],
    users: Optional[UserStore],
    memberships: Optional[MembershipStore],
) -> AppContainer:
    engine = None
    if tenants is None or users is None or memberships is None:
        engine = create_db_engine(settings.DATABASE_URL)
        create_schema(engine)
        session_factory = create_session_factory(engine)
        tenants = tenants or SqlTenantDirectory(session_factory)
        users = users or SqlUserStore(session_factory)
        memberships = memberships or SqlMembershipStore(session_factory)
    return AppContainer.build(settings, tenants=tenants, users=users, memberships=memberships, engine=engine)


def create_app(
    settings: Optional[Settings] = None,
    *,
    tenants: Optional[TenantDirectory] = None,
    users: Optional[UserStore] = None,
    memberships: Optional[MembershipStore] = None,
    container: Optional[AppContainer] = None,
) -> FastAPI:
    """
    Build the ASGI app. Stores default to the SQL adapters on DATABASE_URL.

    Raises ConfigurationError when no session signing secret is configured.
    """
    settings = settings or (container.settings if container else get_settings())
    setup_logging(settings)
    container = container or _build_container(settings, tenants, users, memberships)
    active_lifespans = 0

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal active_lifespans
        # one worker per lifespan; its task is bound to that lifespan's loop
        sweeper = BucketSweeperWorker(container.pipeline.rate_limiters)
        app.state.sweeper = sweeper
        sweeper.start()
        active_lifespans += 1
        logger.info("app_started", app=settings.PROJECT_NAME, env=settings.ENVIRONMENT)
        try:
            yield
        finally:
            await sweeper.shutdown()
            active_lifespans -= 1
            # the engine is shared by every lifespan of this app
            if active_lifespans == 0 and container.engine is not None:
                container.engine.dispose()
            logger.info("app_stopped", app=settings.PROJECT_NAME)

    app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0", lifespan=lifespan)
    app.state.container = container

    # added innermost first: admission runs closest to the routes
    app.add_middleware(AdmissionMiddleware, pipeline=container.pipeline, secure_cookies=settings.TLS_ENABLED)
    if settings.TLS_ENABLED:
        app.add_middleware(HTTPSRedirectMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, tls_enabled=settings.TLS_ENABLED)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(LoggingMiddleware)

    # Routers
    app.include_router(health_router)
    app.include_router(admin_router)
    app.include_router(public_router)

    # Centralized error handling → {code, message, correlation_id?}
    register_exception_handlers(app)

    return app
