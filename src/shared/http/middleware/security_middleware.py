from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

ACME_CHALLENGE_PREFIX = "/.well-known/acme-challenge/"
FORWARDED_PROTO_HEADER = "X-Forwarded-Proto"

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline' 'unsafe-eval' https://www.googletagmanager.com https://www.google-analytics.com",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self' data: https:",
    "font-src 'self' data:",
    "frame-src https://www.youtube.com https://player.vimeo.com",
    "connect-src 'self' https://www.google-analytics.com",
])
HSTS_VALUE = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers on every response, including error responses
    produced by the admission layer. HSTS only when TLS is enabled.
    """
    def __init__(self, app: ASGIApp, *, tls_enabled: bool = False) -> None:
        super().__init__(app)
        self.tls_enabled = tls_enabled

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        response.headers.setdefault("X-XSS-Protection", "1; mode=block")
        response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
        if self.tls_enabled:
            response.headers.setdefault("Strict-Transport-Security", HSTS_VALUE)
        return response


def _is_https(request: Request) -> bool:
    if request.url.scheme == "https":
        return True
    return request.headers.get(FORWARDED_PROTO_HEADER, "").lower() == "https"


class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
    """
    Permanently redirects plain-HTTP requests to ``https://<host><uri>``.
    ACME HTTP-01 challenges must stay reachable over HTTP.
    """
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if _is_https(request) or request.url.path.startswith(ACME_CHALLENGE_PREFIX):
            return await call_next(request)
        uri = request.url.path
        if request.url.query:
            uri = f"{uri}?{request.url.query}"
        host = request.headers.get("host", request.url.netloc)
        return RedirectResponse(f"https://{host}{uri}", status_code=301)
