from __future__ import annotations

from dataclasses import dataclass

from src.identity.access import AccessController
from src.identity.models import User
from src.identity.passwords import PasswordHasher
from src.identity.ports import UserStore
from src.identity.sessions import SessionAuthenticator
from src.shared.exceptions import ForbiddenError, ForbiddenReason, InvalidCredentialsError
from src.shared.logging import log_security_event
from src.tenancy.models import Tenant


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str


class LoginService:
    """
    Password login against one site.

    Unknown email and wrong password are indistinguishable to the caller.
    A correct password without access to the site is a 403, not a 401.
    """

    def __init__(
        self,
        users: UserStore,
        passwords: PasswordHasher,
        access: AccessController,
        sessions: SessionAuthenticator,
    ) -> None:
        self._users = users
        self._passwords = passwords
        self._access = access
        self._sessions = sessions

    def login(self, email: str, password: str, tenant: Tenant) -> LoginResult:
        email = normalize_email(email)
        user = self._users.find_by_email(email) if email else None
        if user is None:
            self._passwords.dummy_verify()
            log_security_event("login_failed", tenant_id=tenant.id, details={"email": email, "reason": "unknown_user"})
            raise InvalidCredentialsError("unknown user")
        if not self._passwords.verify(password, user.password_hash):
            log_security_event("login_failed", user_id=user.id, tenant_id=tenant.id, details={"reason": "bad_password"})
            raise InvalidCredentialsError("bad password")

        decision = self._access.authorize(user, tenant)
        if not decision.allowed:
            log_security_event("access_denied", user_id=user.id, tenant_id=tenant.id, details={"stage": "login"})
            raise ForbiddenError(ForbiddenReason.NO_ACCESS)

        token = self._sessions.issue(user, tenant)
        log_security_event(
            "login_succeeded",
            user_id=user.id,
            tenant_id=tenant.id,
            details={"access": decision.value},
        )
        return LoginResult(user=user, token=token)
