from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.shared.error_codes import ERROR_CODES
from src.shared.logging import get_logger

logger = get_logger(__name__)


class ConfigurationError(RuntimeError):
    """Fatal misconfiguration detected at startup (never raised per request)."""


# ───────────────────────── Base & Domain Exceptions ─────────────────────────
class DomainError(Exception):
    """Base class for domain-level errors. Components raise these, never HTTPException."""
    code: str = "domain_error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str
    details: Optional[Dict[str, Any]]

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.__class__.__name__
        self.details = details

    @property
    def public_message(self) -> str:
        return _msg_for(self.code)


class UnauthenticatedReason(str, Enum):
    """Why a session was rejected. Logged, never returned to the client."""
    MISSING = "missing"
    EMPTY = "empty"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    UNKNOWN_USER = "unknown_user"


class ForbiddenReason(str, Enum):
    NO_ACCESS = "no_access"
    CSRF_MISMATCH = "csrf_mismatch"
    IP_BLOCKED = "ip_blocked"
    GLOBAL_ADMIN_REQUIRED = "global_admin_required"


class TenantNotFoundError(DomainError):
    code = "tenant_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class NotFoundError(DomainError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class UnauthenticatedError(DomainError):
    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, reason: UnauthenticatedReason, message: str = "") -> None:
        super().__init__(message or f"unauthenticated: {reason.value}")
        self.reason = reason


class InvalidCredentialsError(DomainError):
    code = "invalid_credentials"
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(DomainError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, reason: ForbiddenReason, message: str = "") -> None:
        super().__init__(message or f"forbidden: {reason.value}")
        self.reason = reason


class RateLimitedError(DomainError):
    code = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: int, message: str = "") -> None:
        super().__init__(message or "rate limited")
        self.retry_after = retry_after


class InternalServerError(DomainError):
    code = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# ───────────────────────────── Helpers ──────────────────────────────────────

def problem(code: str, message: str, correlation_id: Optional[str]) -> Dict[str, Any]:
    body: Dict[str, Any] = {"code": code, "message": message}
    if correlation_id:
        body["correlation_id"] = correlation_id
    return body


def error_response(
    exc: DomainError,
    correlation_id: Optional[str],
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Render a DomainError with its generic public message only."""
    return JSONResponse(
        status_code=exc.status_code,
        content=problem(exc.code, exc.public_message, correlation_id),
        headers=headers,
    )


def _extract_correlation_id(req: Request) -> Optional[str]:
    return getattr(getattr(req, "state", None), "request_id", None)


def _http_for(code: str) -> int:
    return int(ERROR_CODES.get(code, {}).get("http", status.HTTP_500_INTERNAL_SERVER_ERROR))


def _msg_for(code: str) -> str:
    return str(ERROR_CODES.get(code, {}).get("message", code))

# ─────────────────────────── Registration ───────────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def handle_app_error(req: Request, exc: DomainError):
        return error_response(exc, _extract_correlation_id(req))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(req: Request, exc: RequestValidationError):
        code = "validation_error"
        return JSONResponse(
            status_code=_http_for(code),
            content=problem(code, _msg_for(code), _extract_correlation_id(req)),
        )

    @app.exception_handler(HTTPException)
    async def handle_http_exception(req: Request, exc: HTTPException):
        # map HTTP status → first matching ERROR_CODES entry
        reverse_map = {v["http"]: k for k, v in ERROR_CODES.items()}
        code = reverse_map.get(exc.status_code, "internal_error")
        return JSONResponse(
            status_code=exc.status_code,
            content=problem(code, _msg_for(code), _extract_correlation_id(req)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(req: Request, exc: Exception):
        code = "internal_error"
        logger.exception("unhandled_exception", exc_type=exc.__class__.__name__)
        return JSONResponse(
            status_code=_http_for(code),
            content=problem(code, _msg_for(code), _extract_correlation_id(req)),
        )
