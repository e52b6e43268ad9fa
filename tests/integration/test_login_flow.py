import pytest
from fastapi.testclient import TestClient

from src.main import create_app
from src.shared.exceptions import ConfigurationError
from src.tenancy.models import Tenant


def test_owner_login_then_dashboard(client, login_as):
    resp = login_as(client, "  Owner@Alpha.TEST ")
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["email"] == "owner@alpha.test"
    assert body["expires_in"] == 8 * 3600

    set_cookie = resp.headers["set-cookie"]
    assert "stinky_token=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "samesite=lax" in set_cookie.lower()
    assert "Max-Age=28800" in set_cookie

    dash = client.get("/admin/dashboard")
    assert dash.status_code == 200
    assert dash.json()["site"]["id"] == 1
    assert dash.json()["access"] == "owner"


def test_wrong_password_and_unknown_email_look_the_same(client, login_as):
    wrong = login_as(client, "owner@alpha.test", "nope")
    unknown = login_as(client, "nobody@alpha.test")
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["message"] == unknown.json()["message"]
    assert "stinky_token" not in wrong.cookies


def test_valid_credentials_without_access_is_403(client, login_as):
    resp = login_as(client, "stranger@example.test")
    assert resp.status_code == 403
    assert "stinky_token" not in resp.cookies


def test_member_and_global_admin_can_log_in(client_factory, login_as):
    with client_factory() as member:
        assert login_as(member, "editor@alpha.test").status_code == 200
        assert member.get("/admin/dashboard").json()["access"] == "member"
    with client_factory(host="beta-camp.org") as admin:
        assert login_as(admin, "root@stinkykitty.org").status_code == 200
        assert admin.get("/admin/dashboard").json()["access"] == "global_admin"


def test_session_expires(client, login_as, wall_clock):
    login_as(client, "owner@alpha.test")
    wall_clock.advance(8 * 3600)
    assert client.get("/admin/dashboard").status_code == 401


def test_logout_clears_cookie(client, login_as, csrf_token):
    login_as(client, "owner@alpha.test")
    token = csrf_token(client)
    resp = client.post("/admin/logout", headers={"X-CSRF-Token": token})
    assert resp.status_code == 204
    assert 'stinky_token=""' in resp.headers["set-cookie"] or "Max-Age=0" in resp.headers["set-cookie"]
    assert client.get("/admin/dashboard").status_code == 401


def test_global_admin_override_acts_on_override_site(client, login_as):
    login_as(client, "root@stinkykitty.org")
    resp = client.get("/admin/dashboard", params={"site": "2"})
    assert resp.status_code == 200
    assert resp.json()["site"]["id"] == 2
    assert resp.json()["host_site_id"] == 1


def test_override_to_site_without_access_is_forbidden(client, login_as):
    login_as(client, "owner@alpha.test")
    assert client.get("/admin/dashboard", params={"site": "2"}).status_code == 403
    assert client.get("/admin/dashboard", params={"site": "abc"}).status_code == 404


def test_platform_routes_require_global_admin(client_factory, login_as):
    with client_factory() as owner:
        login_as(owner, "owner@alpha.test")
        assert owner.get("/admin/platform/tenants/2").status_code == 403
    with client_factory() as admin:
        login_as(admin, "root@stinkykitty.org")
        resp = admin.get("/admin/platform/tenants/2")
        assert resp.status_code == 200
        assert resp.json()["allowed_ips"] == ["203.0.113.0/24"]
        missing = admin.get("/admin/platform/tenants/999")
        assert missing.status_code == 404
        assert missing.json()["code"] == "not_found"


def test_session_cookie_from_one_site_is_checked_against_another(client_factory, login_as):
    with client_factory() as alpha:
        login_as(alpha, "owner@alpha.test")
        cookie = alpha.cookies.get("stinky_token")
    with client_factory(host="beta-camp.org") as beta:
        beta.cookies.set("stinky_token", cookie)
        assert beta.get("/admin/dashboard").status_code == 403


def test_login_form_exposes_csrf_helpers(client):
    body = client.get("/admin/login").json()
    assert body["site"]["subdomain"] == "alpha"
    assert body["csrf_token"] in body["csrf_field"]
    assert body["csrf_field"].startswith('<input type="hidden" name="csrf_token"')


def test_missing_secret_fails_at_startup(settings, tenants, users, memberships):
    with pytest.raises(ConfigurationError):
        create_app(settings.model_copy(update={"JWT_SECRET": ""}), tenants=tenants, users=users, memberships=memberships)


def test_store_failure_surfaces_as_500(settings, tenants, users, memberships):
    def boom(_subdomain):
        raise RuntimeError("db down")

    tenants.find_by_subdomain = boom
    app = create_app(settings, tenants=tenants, users=users, memberships=memberships)
    with TestClient(app, base_url="http://alpha.stinkykitty.org", raise_server_exceptions=False) as c:
        resp = c.get("/")
    assert resp.status_code == 500


def test_platform_detail_reports_corrupt_allowlist(client, login_as, tenants):
    tenants.add(Tenant(id=7, subdomain="broken", owner_user_id=1, allowed_ips="not-json"))
    login_as(client, "root@stinkykitty.org")
    resp = client.get("/admin/platform/tenants/7")
    assert resp.status_code == 200
    body = resp.json()
    assert body["allowed_ips"] == []
    assert body["allowed_ips_valid"] is False
    assert body["allowed_ips_raw"] == "not-json"
    assert client.get("/admin/platform/tenants/2").json()["allowed_ips_valid"] is True
