"""
Request admission pipeline.

Fixed stage order:
    tenant → ip filter → rate limit → csrf → session → access

Every stage returns a StageResult. The first result carrying an error ends
the run; later stages do not execute. The pipeline is synchronous and is
driven from a worker thread by AdmissionMiddleware.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from src.admission.context import AdmissionRequest, RequestContext
from src.admission.csrf import STATE_CHANGING_METHODS, CSRFGuard
from src.admission.ip_filter import IPFilter
from src.admission.policy import PolicyTable, RoutePolicy
from src.admission.rate_limiter import RateLimiter
from src.identity.access import AccessController, AccessDecision
from src.identity.ports import UserStore
from src.identity.sessions import SessionAuthenticator
from src.shared.exceptions import (
    DomainError,
    ForbiddenError,
    ForbiddenReason,
    InternalServerError,
    RateLimitedError,
    TenantNotFoundError,
    UnauthenticatedError,
    UnauthenticatedReason,
)
from src.shared.logging import get_logger, log_security_event
from src.tenancy.models import Tenant
from src.tenancy.ports import TenantDirectory
from src.tenancy.resolver import TenantResolver

logger = get_logger(__name__)

RATE_LIMIT_HEADER = "X-RateLimit-Limit"
RATE_REMAINING_HEADER = "X-RateLimit-Remaining"
RETRY_AFTER_HEADER = "Retry-After"


@dataclass(frozen=True)
class StageResult:
    error: Optional[DomainError] = None

    @property
    def terminated(self) -> bool:
        return self.error is not None


CONTINUE = StageResult()


def terminate(error: DomainError) -> StageResult:
    return StageResult(error=error)


@dataclass(frozen=True)
class AdmissionResult:
    context: RequestContext
    error: Optional[DomainError] = None

    @property
    def admitted(self) -> bool:
        return self.error is None


Stage = Callable[[AdmissionRequest, RoutePolicy, RequestContext], StageResult]


class RequestPipeline:
    def __init__(
        self,
        *,
        resolver: TenantResolver,
        tenants: TenantDirectory,
        ip_filter: IPFilter,
        csrf: CSRFGuard,
        sessions: SessionAuthenticator,
        users: UserStore,
        access: AccessController,
        policies: PolicyTable,
        rate_limits: Optional[Mapping[str, RateLimiter]] = None,
    ) -> None:
        self._resolver = resolver
        self._tenants = tenants
        self._ip_filter = ip_filter
        self._csrf = csrf
        self._sessions = sessions
        self._users = users
        self._access = access
        self.policies = policies
        self._rate_limits: Dict[str, RateLimiter] = dict(rate_limits or {})
        self._stages: Tuple[Stage, ...] = (
            self._resolve_tenant,
            self._filter_ip,
            self._rate_limit,
            self._check_csrf,
            self._authenticate,
            self._authorize,
        )

    @property
    def rate_limiters(self) -> List[RateLimiter]:
        """Distinct limiters; several paths may share one."""
        seen: Dict[int, RateLimiter] = {}
        for limiter in self._rate_limits.values():
            seen.setdefault(id(limiter), limiter)
        return list(seen.values())

    def run(self, request: AdmissionRequest, policy: Optional[RoutePolicy] = None) -> AdmissionResult:
        policy = policy or self.policies.match(request.path)
        ctx = RequestContext(client_ip=request.client_ip)
        for stage in self._stages:
            result = stage(request, policy, ctx)
            if result.terminated:
                return AdmissionResult(context=ctx, error=result.error)
        return AdmissionResult(context=ctx)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _resolve_tenant(self, request: AdmissionRequest, policy: RoutePolicy, ctx: RequestContext) -> StageResult:
        if not policy.resolve_tenant:
            return CONTINUE
        try:
            tenant = self._resolver.resolve(request.host)
        except TenantNotFoundError as exc:
            return terminate(exc)
        ctx.tenant = ctx.host_tenant = tenant

        # an explicit override only matters where the caller is authorized
        if policy.authenticate and request.tenant_override is not None:
            override = self._find_override(request.tenant_override)
            # reported after authentication so anonymous callers cannot enumerate site ids
            ctx.override_tenant = override
            ctx.override_missing = override is None
        return CONTINUE

    def _find_override(self, raw: str) -> Optional[Tenant]:
        try:
            tenant_id = int(raw.strip())
        except ValueError:
            return None
        return self._tenants.find_by_id(tenant_id)

    def _filter_ip(self, request: AdmissionRequest, policy: RoutePolicy, ctx: RequestContext) -> StageResult:
        if not policy.filter_ip:
            return CONTINUE
        scopes: List[Optional[Tenant]] = [t for t in (ctx.host_tenant, ctx.override_tenant) if t is not None]
        for scope in scopes or [None]:
            if not self._ip_filter.allow(ctx.client_ip, scope):
                log_security_event(
                    "ip_blocked",
                    tenant_id=scope.id if scope else None,
                    details={"client_ip": ctx.client_ip},
                )
                return terminate(ForbiddenError(ForbiddenReason.IP_BLOCKED))
        return CONTINUE

    def _rate_limit(self, request: AdmissionRequest, policy: RoutePolicy, ctx: RequestContext) -> StageResult:
        limiter = self._rate_limits.get(request.path)
        if limiter is None or request.method.upper() not in STATE_CHANGING_METHODS:
            return CONTINUE
        allowed, remaining = limiter.allow(ctx.client_ip or "unknown")
        ctx.response_headers[RATE_LIMIT_HEADER] = str(limiter.capacity)
        ctx.response_headers[RATE_REMAINING_HEADER] = str(remaining)
        if allowed:
            return CONTINUE
        retry_after = limiter.retry_after_seconds
        ctx.response_headers[RETRY_AFTER_HEADER] = str(retry_after)
        log_security_event(
            "rate_limited",
            tenant_id=ctx.tenant.id if ctx.tenant else None,
            details={"client_ip": ctx.client_ip, "path": request.path},
        )
        return terminate(RateLimitedError(retry_after))

    def _check_csrf(self, request: AdmissionRequest, policy: RoutePolicy, ctx: RequestContext) -> StageResult:
        if not policy.csrf:
            return CONTINUE
        token, issued = self._csrf.ensure_token(request.csrf_cookie)
        ctx.csrf_token, ctx.csrf_issued = token, issued
        if self._csrf.verify(request.method, token, request.csrf_header, request.csrf_form):
            return CONTINUE
        log_security_event(
            "csrf_rejected",
            tenant_id=ctx.tenant.id if ctx.tenant else None,
            details={"path": request.path, "method": request.method},
        )
        return terminate(ForbiddenError(ForbiddenReason.CSRF_MISMATCH))

    def _authenticate(self, request: AdmissionRequest, policy: RoutePolicy, ctx: RequestContext) -> StageResult:
        if not policy.authenticate:
            return CONTINUE
        try:
            if not request.session_token:
                raise UnauthenticatedError(UnauthenticatedReason.MISSING)
            claims = self._sessions.validate(request.session_token)
            user = self._users.find_by_id(claims.user_id)
            if user is None:
                raise UnauthenticatedError(UnauthenticatedReason.UNKNOWN_USER)
        except UnauthenticatedError as exc:
            log_security_event(
                "unauthenticated",
                tenant_id=ctx.tenant.id if ctx.tenant else None,
                details={"reason": exc.reason.value},
            )
            return terminate(exc)
        ctx.claims, ctx.user = claims, user
        return CONTINUE

    def _authorize(self, request: AdmissionRequest, policy: RoutePolicy, ctx: RequestContext) -> StageResult:
        if not policy.authenticate:
            return CONTINUE
        if ctx.override_missing:
            return terminate(TenantNotFoundError("override tenant not found"))
        target = ctx.override_tenant or ctx.tenant
        if target is None or ctx.user is None:
            logger.error("tenant_context_missing", path=request.path)
            return terminate(InternalServerError("tenant context unavailable"))

        decision = self._access.authorize(ctx.user, target)
        ctx.access = decision
        if not decision.allowed:
            log_security_event("access_denied", user_id=ctx.user.id, tenant_id=target.id)
            return terminate(ForbiddenError(ForbiddenReason.NO_ACCESS))
        if policy.global_admin_only and not ctx.user.is_global_admin:
            log_security_event(
                "access_denied",
                user_id=ctx.user.id,
                tenant_id=target.id,
                details={"reason": ForbiddenReason.GLOBAL_ADMIN_REQUIRED.value},
            )
            return terminate(ForbiddenError(ForbiddenReason.GLOBAL_ADMIN_REQUIRED))
        if decision is AccessDecision.ALLOW_GLOBAL_ADMIN:
            log_security_event("access_granted_global_admin", user_id=ctx.user.id, tenant_id=target.id)

        if ctx.override_tenant is not None:
            # downstream consumers must act on the site the caller was authorized for
            ctx.tenant = ctx.override_tenant
            if ctx.host_tenant is None or ctx.host_tenant.id != ctx.override_tenant.id:
                log_security_event(
                    "tenant_override_applied",
                    user_id=ctx.user.id,
                    tenant_id=ctx.override_tenant.id,
                    details={"host_tenant_id": ctx.host_tenant.id if ctx.host_tenant else None},
                )
        return CONTINUE
