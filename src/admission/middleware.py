from __future__ import annotations

from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from src.admission.context import AdmissionRequest
from src.admission.csrf import (
    CSRF_COOKIE_MAX_AGE,
    CSRF_COOKIE_NAME,
    CSRF_FORM_FIELD,
    CSRF_HEADER_NAME,
    STATE_CHANGING_METHODS,
)
from src.admission.ip_filter import FORWARDED_FOR_HEADER, extract_client_ip
from src.admission.pipeline import RequestPipeline
from src.admission.policy import RoutePolicy
from src.identity.sessions import SESSION_COOKIE_NAME
from src.shared.exceptions import error_response
from src.shared.logging import bind_request_context, get_logger

logger = get_logger("admission")

TENANT_OVERRIDE_PARAM = "site"
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _read_form_token(request: Request) -> Optional[str]:
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(FORM_CONTENT_TYPES):
        return None
    # cache the raw body first so the route handler can still read it
    await request.body()
    try:
        form = await request.form()
    except (HTTPException, MultiPartException, KeyError, ValueError) as exc:
        # an unreadable body carries no token; the CSRF stage rejects it
        logger.warning("csrf_form_unreadable", error=type(exc).__name__)
        return None
    value = form.get(CSRF_FORM_FIELD)
    return value if isinstance(value, str) else None


class AdmissionMiddleware(BaseHTTPMiddleware):
    """
    Runs every request through the admission pipeline before routing.

    On termination the error contract response is returned directly and the
    route never runs. On success the typed RequestContext is exposed as
    ``request.state.admission``.
    """

    def __init__(self, app: ASGIApp, *, pipeline: RequestPipeline, secure_cookies: bool = False) -> None:
        super().__init__(app)
        self.pipeline = pipeline
        self.secure_cookies = secure_cookies

    async def _build_request(self, request: Request, policy: RoutePolicy) -> AdmissionRequest:
        csrf_header = request.headers.get(CSRF_HEADER_NAME)
        csrf_form = None
        if policy.csrf and not csrf_header and request.method.upper() in STATE_CHANGING_METHODS:
            csrf_form = await _read_form_token(request)

        return AdmissionRequest(
            host=request.headers.get("host", ""),
            method=request.method,
            path=request.url.path,
            client_ip=extract_client_ip(
                request.headers.get(FORWARDED_FOR_HEADER),
                request.client.host if request.client else None,
            ),
            session_token=request.cookies.get(SESSION_COOKIE_NAME),
            csrf_cookie=request.cookies.get(CSRF_COOKIE_NAME),
            csrf_header=csrf_header,
            csrf_form=csrf_form,
            tenant_override=request.query_params.get(TENANT_OVERRIDE_PARAM),
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        policy = self.pipeline.policies.match(request.url.path)
        admission = await self._build_request(request, policy)
        result = await run_in_threadpool(self.pipeline.run, admission, policy)
        ctx = result.context

        bind_request_context(
            client_ip=ctx.client_ip,
            tenant_id=ctx.tenant.id if ctx.tenant else None,
            user_id=ctx.user.id if ctx.user else None,
        )

        if result.error is not None:
            logger.info(
                "request_rejected",
                code=result.error.code,
                status_code=result.error.status_code,
            )
            response: Response = error_response(
                result.error,
                getattr(request.state, "request_id", None),
                headers=ctx.response_headers or None,
            )
        else:
            request.state.admission = ctx
            response = await call_next(request)
            for name, value in ctx.response_headers.items():
                response.headers.setdefault(name, value)

        if ctx.csrf_issued and ctx.csrf_token:
            response.set_cookie(
                CSRF_COOKIE_NAME,
                ctx.csrf_token,
                max_age=CSRF_COOKIE_MAX_AGE,
                path="/",
                httponly=False,
                secure=self.secure_cookies,
                samesite="lax",
            )
        return response
