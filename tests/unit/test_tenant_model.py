import json

import pytest

from src.tenancy.models import Tenant


def test_allowlist_add_is_idempotent():
    tenant = Tenant(id=1, subdomain="camp", owner_user_id=1)
    tenant = tenant.with_allowed_ip("10.0.0.0/8")
    assert tenant.with_allowed_ip("10.0.0.0/8") is tenant
    assert tenant.get_allowed_ips() == ["10.0.0.0/8"]


def test_allowlist_remove():
    tenant = Tenant(id=1, subdomain="camp", owner_user_id=1, allowed_ips=json.dumps(["10.0.0.0/8", "192.0.2.0/24"]))
    tenant = tenant.without_allowed_ip("10.0.0.0/8")
    assert tenant.get_allowed_ips() == ["192.0.2.0/24"]
    assert tenant.without_allowed_ip("192.0.2.0/24").allowed_ips == ""


def test_allowlist_remove_missing_raises():
    with pytest.raises(KeyError):
        Tenant(id=1, subdomain="camp", owner_user_id=1).without_allowed_ip("10.0.0.0/8")


def test_corrupt_allowlist_raises():
    with pytest.raises(ValueError):
        Tenant(id=1, subdomain="camp", owner_user_id=1, allowed_ips="[1, 2]").get_allowed_ips()
