import jwt
import pytest

from src.identity.models import User
from src.identity.sessions import SessionAuthenticator
from src.shared.exceptions import ConfigurationError, UnauthenticatedError, UnauthenticatedReason
from src.tenancy.models import Tenant

USER = User(id=3, email="editor@alpha.test", is_global_admin=False)
TENANT = Tenant(id=1, subdomain="alpha", owner_user_id=1)


@pytest.fixture
def sessions(wall_clock):
    return SessionAuthenticator("s3cret", 8, clock=wall_clock)


def _reason(sessions, token):
    with pytest.raises(UnauthenticatedError) as exc_info:
        sessions.validate(token)
    return exc_info.value.reason


def test_issue_then_validate(sessions, wall_clock):
    claims = sessions.validate(sessions.issue(USER, TENANT))
    assert claims.user_id == 3
    assert claims.tenant_id == 1
    assert claims.email == "editor@alpha.test"
    assert claims.is_global_admin is False
    assert claims.issued_at == claims.not_before == int(wall_clock.now)
    assert claims.expires_at == int(wall_clock.now) + 8 * 3600


def test_wire_claim_names(sessions):
    # issued on the fake clock, so only the signature is checked here
    payload = jwt.decode(
        sessions.issue(USER, TENANT),
        "s3cret",
        algorithms=["HS256"],
        options={"verify_exp": False, "verify_nbf": False, "verify_iat": False},
    )
    assert set(payload) == {"user_id", "email", "site_id", "is_global_admin", "exp", "iat", "nbf"}


def test_expired_at_exact_boundary(sessions, wall_clock):
    token = sessions.issue(USER, TENANT)
    wall_clock.advance(8 * 3600 - 1)
    sessions.validate(token)
    wall_clock.advance(1)
    assert _reason(sessions, token) is UnauthenticatedReason.EXPIRED


def test_not_yet_valid(sessions, wall_clock):
    token = sessions.issue(USER, TENANT)
    wall_clock.advance(-10)
    assert _reason(sessions, token) is UnauthenticatedReason.NOT_YET_VALID


def test_empty_and_malformed(sessions):
    assert _reason(sessions, "") is UnauthenticatedReason.EMPTY
    assert _reason(sessions, "not.a.jwt") is UnauthenticatedReason.MALFORMED


def test_wrong_secret_is_bad_signature(sessions, wall_clock):
    other = SessionAuthenticator("other-secret", 8, clock=wall_clock)
    assert _reason(sessions, other.issue(USER, TENANT)) is UnauthenticatedReason.BAD_SIGNATURE


def test_tampered_payload_rejected(sessions):
    header, payload, signature = sessions.issue(USER, TENANT).split(".")
    forged = jwt.encode({"user_id": 4, "site_id": 1, "exp": 9e9, "iat": 0, "nbf": 0}, "x", algorithm="HS256")
    token = ".".join([header, forged.split(".")[1], signature])
    assert _reason(sessions, token) is UnauthenticatedReason.BAD_SIGNATURE


def test_alg_none_rejected(sessions, wall_clock):
    now = int(wall_clock.now)
    token = jwt.encode(
        {"user_id": 4, "site_id": 1, "is_global_admin": True, "exp": now + 60, "iat": now, "nbf": now},
        None,
        algorithm="none",
    )
    assert _reason(sessions, token) in {UnauthenticatedReason.BAD_SIGNATURE, UnauthenticatedReason.MALFORMED}


def test_missing_required_claim_is_malformed(sessions, wall_clock):
    now = int(wall_clock.now)
    token = jwt.encode({"user_id": 3, "exp": now + 60, "iat": now, "nbf": now}, "s3cret", algorithm="HS256")
    assert _reason(sessions, token) is UnauthenticatedReason.MALFORMED


def test_wrong_claim_type_is_malformed(sessions, wall_clock):
    now = int(wall_clock.now)
    token = jwt.encode(
        {"user_id": "3", "site_id": 1, "exp": now + 60, "iat": now, "nbf": now}, "s3cret", algorithm="HS256"
    )
    assert _reason(sessions, token) is UnauthenticatedReason.MALFORMED


def test_non_positive_expiry_defaults_to_eight_hours(wall_clock):
    assert SessionAuthenticator("s3cret", 0, clock=wall_clock).expiry_seconds == 8 * 3600


def test_empty_secret_is_configuration_error():
    with pytest.raises(ConfigurationError):
        SessionAuthenticator("")
