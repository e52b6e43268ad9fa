"""
Structured logging using structlog with:
- JSON/console switchable format
- Correlation ID + request context (request_id, tenant_id, user_id, client_ip)
- Email redaction outside of dev
- A dedicated ``security`` logger for admission decisions
"""

from __future__ import annotations

import logging
import logging.config
import re
import sys
import uuid
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

import structlog

if TYPE_CHECKING:  # pragma: no cover
    from src.config import Settings

# ---------------------------------------------------------------------
# PII redaction
# ---------------------------------------------------------------------


class PIIRedactionProcessor:
    """
    Structlog processor to redact e-mail local-parts from strings inside
    event_dict (recursively). Login failures carry user-supplied e-mails.
    """
    P_EMAIL = re.compile(r"\b([A-Za-z0-9._%+-]+)@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")

    def __call__(self, logger, method_name, event_dict):
        return self._redact(event_dict)

    def _redact(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._redact(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._redact(v) for v in value]
        if isinstance(value, str):
            return self.P_EMAIL.sub(lambda m: f"***@{m.group(2)}", value)
        return value


def _passthrough(logger, method_name, event_dict):
    return event_dict


# ---------------------------------------------------------------------
# Context processors
# ---------------------------------------------------------------------


class CorrelationIdProcessor:
    """Attach correlation_id from structlog contextvars into each event."""
    def __call__(self, logger, method_name, event_dict):
        cid = structlog.contextvars.get_contextvars().get("correlation_id")
        if cid:
            event_dict["correlation_id"] = cid
        return event_dict


# ---------------------------------------------------------------------
# Public helpers to use from middleware/route code
# ---------------------------------------------------------------------


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Generate/bind a correlation_id if not provided; returns the id."""
    cid = correlation_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(correlation_id=cid)
    return cid


def bind_request_context(
    *,
    request_id: Optional[str] = None,
    path: Optional[str] = None,
    method: Optional[str] = None,
    user_id: Optional[int] = None,
    tenant_id: Optional[int] = None,
    client_ip: Optional[str] = None,
) -> None:
    """Bind standard request context fields (call in middleware/route handlers)."""
    payload = {
        k: v
        for k, v in dict(
            request_id=request_id,
            path=path,
            method=method,
            user_id=user_id,
            tenant_id=tenant_id,
            client_ip=client_ip,
        ).items()
        if v is not None
    }
    if payload:
        structlog.contextvars.bind_contextvars(**payload)


def clear_request_context() -> None:
    """Clear all bound contextvars (call at end of request)."""
    structlog.contextvars.clear_contextvars()


# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------

def _ensure_log_format(settings: "Settings") -> str:
    """
    Determine output format:
      - settings.LOG_FORMAT when set ("json"|"console").
      - Else "console" for dev, "json" for staging/prod.
    """
    if settings.LOG_FORMAT in ("json", "console"):
        return settings.LOG_FORMAT
    return "console" if settings.is_dev else "json"


def _level_name_to_int(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def setup_logging(settings: "Settings") -> None:
    """Idempotent structured logging configuration."""
    log_format = _ensure_log_format(settings)

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            },
            "console": {
                "format": "%(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if log_format == "json" else "console",
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": _level_name_to_int(settings.LOG_LEVEL),
            "handlers": ["console"],
        },
        "loggers": {
            "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "sqlalchemy.engine": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
    })

    processors: Iterable[Any] = [
        structlog.contextvars.merge_contextvars,
        CorrelationIdProcessor(),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        # Redact only outside of dev to help debugging locally
        PIIRedactionProcessor() if not settings.is_dev else _passthrough,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=list(processors),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


security_logger = structlog.get_logger("security")


def log_security_event(
    event_type: str,
    *,
    user_id: Optional[int] = None,
    tenant_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> None:
    """Log security-relevant events (admission denials, overrides, logins)."""
    security_logger.info(
        "Security event",
        event_type=event_type,
        user_id=user_id,
        tenant_id=tenant_id,
        details=details or {},
        **kwargs,
    )
