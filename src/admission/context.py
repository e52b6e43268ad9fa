from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from src.identity.access import AccessDecision
from src.identity.models import SessionClaims, User
from src.tenancy.models import Tenant


@dataclass(frozen=True)
class AdmissionRequest:
    """The parts of an inbound HTTP request the admission pipeline looks at."""
    host: str
    method: str
    path: str
    client_ip: Optional[str]
    session_token: Optional[str] = None
    csrf_cookie: Optional[str] = None
    csrf_header: Optional[str] = None
    csrf_form: Optional[str] = None
    tenant_override: Optional[str] = None


@dataclass
class RequestContext:
    """
    Per-request admission state, filled in stage by stage.

    ``tenant`` is the site every downstream consumer must act on. It starts as
    the host-resolved site and is switched to the override site once the
    caller has been authorized against it; ``host_tenant`` keeps the original
    for audit logging.
    """
    client_ip: Optional[str]
    tenant: Optional[Tenant] = None
    host_tenant: Optional[Tenant] = None
    override_tenant: Optional[Tenant] = None
    override_missing: bool = False
    user: Optional[User] = None
    claims: Optional[SessionClaims] = None
    access: Optional[AccessDecision] = None
    csrf_token: Optional[str] = None
    csrf_issued: bool = False
    response_headers: Dict[str, str] = field(default_factory=dict)
