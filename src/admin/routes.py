# src/admin/routes.py

from fastapi import APIRouter, Depends, Form, status
from fastapi.responses import JSONResponse, Response

from src.admin.schemas import (
    DashboardOut,
    LoginFormOut,
    LoginOut,
    TenantDetailOut,
    TenantOut,
    UserOut,
)
from src.admission.context import RequestContext
from src.admission.csrf import csrf_hidden_input
from src.container import AppContainer
from src.dependencies import get_container, get_request_context, require_tenant, require_user
from src.identity.login import LoginService
from src.identity.models import User
from src.identity.sessions import SESSION_COOKIE_NAME
from src.shared.exceptions import NotFoundError
from src.shared.logging import get_logger
from src.tenancy.models import Tenant

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])
public_router = APIRouter(tags=["Public"])


def get_login_service(container: AppContainer = Depends(get_container)) -> LoginService:
    return LoginService(container.users, container.passwords, container.access, container.sessions)


@router.get("/login", response_model=LoginFormOut)
def login_form(
    tenant: Tenant = Depends(require_tenant),
    ctx: RequestContext = Depends(get_request_context),
) -> LoginFormOut:
    """Everything a login form needs; the CSRF cookie is set by the admission layer."""
    token = ctx.csrf_token or ""
    return LoginFormOut(site=TenantOut.from_tenant(tenant), csrf_token=token, csrf_field=csrf_hidden_input(token))


@router.post("/login", response_model=LoginOut)
def login(
    email: str = Form(...),
    password: str = Form(...),
    tenant: Tenant = Depends(require_tenant),
    container: AppContainer = Depends(get_container),
    service: LoginService = Depends(get_login_service),
):
    """
    Password login for the site resolved from the Host header.

    Raises:
        401: Invalid credentials
        403: Valid credentials without access to this site
    """
    result = service.login(email, password, tenant)
    body = LoginOut(
        user=UserOut.from_user(result.user),
        site=TenantOut.from_tenant(tenant),
        expires_in=container.sessions.expiry_seconds,
    )
    response = JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump())
    response.set_cookie(
        SESSION_COOKIE_NAME,
        result.token,
        max_age=container.sessions.expiry_seconds,
        path="/",
        httponly=True,
        secure=container.settings.TLS_ENABLED,
        samesite="lax",
    )
    return response


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(container: AppContainer = Depends(get_container)):
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=container.settings.TLS_ENABLED,
        samesite="lax",
    )
    return response


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(
    ctx: RequestContext = Depends(get_request_context),
    tenant: Tenant = Depends(require_tenant),
    user: User = Depends(require_user),
) -> DashboardOut:
    return DashboardOut(
        site=TenantOut.from_tenant(tenant),
        user=UserOut.from_user(user),
        access=ctx.access.value if ctx.access else "",
        host_site_id=ctx.host_tenant.id if ctx.host_tenant else None,
    )


@router.get("/platform/tenants/{tenant_id}", response_model=TenantDetailOut)
def platform_tenant(
    tenant_id: int,
    container: AppContainer = Depends(get_container),
    user: User = Depends(require_user),
) -> TenantDetailOut:
    """Global-admin lookup of any site by id."""
    tenant = container.tenants.find_by_id(tenant_id)
    if tenant is None:
        raise NotFoundError(f"tenant {tenant_id} not found")
    logger.info("platform_tenant_viewed", tenant_id=tenant_id, user_id=user.id)
    return TenantDetailOut.from_tenant(tenant)


@public_router.get("/", response_model=TenantOut)
def site_home(tenant: Tenant = Depends(require_tenant)) -> TenantOut:
    return TenantOut.from_tenant(tenant)
