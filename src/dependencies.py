# src/dependencies.py
from __future__ import annotations

from fastapi import Request

from src.admission.context import RequestContext
from src.container import AppContainer
from src.identity.models import User
from src.shared.exceptions import InternalServerError
from src.tenancy.models import Tenant


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_request_context(request: Request) -> RequestContext:
    """
    The admission context for this request. Routes are only reachable through
    AdmissionMiddleware, so a missing context is a wiring bug.
    """
    ctx = getattr(request.state, "admission", None)
    if not isinstance(ctx, RequestContext):
        raise InternalServerError("admission context missing")
    return ctx


def require_tenant(request: Request) -> Tenant:
    ctx = get_request_context(request)
    if ctx.tenant is None:
        raise InternalServerError("tenant context missing")
    return ctx.tenant


def require_user(request: Request) -> User:
    ctx = get_request_context(request)
    if ctx.user is None:
        raise InternalServerError("user context missing")
    return ctx.user
