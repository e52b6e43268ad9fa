"""
Identity: users, site memberships, signed sessions and the access rules.
"""
from .access import AccessController, AccessDecision
from .login import LoginResult, LoginService, normalize_email
from .models import Membership, Role, SessionClaims, User
from .passwords import PasswordHasher
from .ports import MembershipStore, UserStore
from .sessions import SESSION_COOKIE_NAME, SessionAuthenticator

__all__ = [
    "AccessController",
    "AccessDecision",
    "LoginResult",
    "LoginService",
    "Membership",
    "MembershipStore",
    "PasswordHasher",
    "Role",
    "SESSION_COOKIE_NAME",
    "SessionAuthenticator",
    "SessionClaims",
    "User",
    "UserStore",
    "normalize_email",
]
