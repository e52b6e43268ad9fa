"""
Admission layer: everything a request passes through before a route handler
runs (tenant resolution, IP filtering, rate limiting, CSRF, session, access).
"""
from src.admission.context import AdmissionRequest, RequestContext
from src.admission.csrf import CSRFGuard, csrf_hidden_input, generate_csrf_token
from src.admission.ip_filter import IPFilter, extract_client_ip
from src.admission.middleware import AdmissionMiddleware
from src.admission.pipeline import AdmissionResult, RequestPipeline, StageResult
from src.admission.policy import PolicyTable, RoutePolicy, default_policies
from src.admission.rate_limiter import RateLimiter

__all__ = [
    "AdmissionMiddleware",
    "AdmissionRequest",
    "AdmissionResult",
    "CSRFGuard",
    "IPFilter",
    "PolicyTable",
    "RateLimiter",
    "RequestContext",
    "RequestPipeline",
    "RoutePolicy",
    "StageResult",
    "csrf_hidden_input",
    "default_policies",
    "extract_client_ip",
    "generate_csrf_token",
]
