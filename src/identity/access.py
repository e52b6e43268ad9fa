from __future__ import annotations

from enum import Enum

from src.identity.models import User
from src.identity.ports import MembershipStore
from src.tenancy.models import Tenant


class AccessDecision(str, Enum):
    """Outcome of an authorization check; the ALLOW_* values name the rule that matched."""
    ALLOW_GLOBAL_ADMIN = "global_admin"
    ALLOW_OWNER = "owner"
    ALLOW_MEMBER = "member"
    FORBIDDEN = "forbidden"

    @property
    def allowed(self) -> bool:
        return self is not AccessDecision.FORBIDDEN


class AccessController:
    """
    Decides whether a user may act on a site.

    Rules, first match wins:
      1. global admin: unconditional. This is an irrevocable elevation across
         every site, not a default role; it is granted only by an operator.
      2. the site's owner
      3. any membership row for (site, user), whatever its role
    """

    def __init__(self, memberships: MembershipStore) -> None:
        self._memberships = memberships

    def authorize(self, user: User, tenant: Tenant) -> AccessDecision:
        if user.is_global_admin:
            return AccessDecision.ALLOW_GLOBAL_ADMIN
        if tenant.owner_user_id == user.id:
            return AccessDecision.ALLOW_OWNER
        if self._memberships.find(tenant.id, user.id) is not None:
            return AccessDecision.ALLOW_MEMBER
        return AccessDecision.FORBIDDEN
