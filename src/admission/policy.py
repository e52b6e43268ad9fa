from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class RoutePolicy:
    """Which optional admission stages apply to a route."""
    resolve_tenant: bool = True
    filter_ip: bool = False
    csrf: bool = False
    authenticate: bool = False
    global_admin_only: bool = False


SYSTEM = RoutePolicy(resolve_tenant=False)
PUBLIC = RoutePolicy(csrf=True)
LOGIN = RoutePolicy(filter_ip=True, csrf=True)
ADMIN = RoutePolicy(filter_ip=True, csrf=True, authenticate=True)
PLATFORM_ADMIN = RoutePolicy(filter_ip=True, csrf=True, authenticate=True, global_admin_only=True)


def _matches(path: str, prefix: str) -> bool:
    if prefix == "/":
        return True
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


class PolicyTable:
    """Longest-prefix match from path to RoutePolicy."""

    def __init__(self, rules: Iterable[Tuple[str, RoutePolicy]], default: RoutePolicy = PUBLIC) -> None:
        self._rules: List[Tuple[str, RoutePolicy]] = sorted(rules, key=lambda r: len(r[0]), reverse=True)
        self._default = default

    def match(self, path: str) -> RoutePolicy:
        for prefix, policy in self._rules:
            if _matches(path, prefix):
                return policy
        return self._default


def default_policies() -> PolicyTable:
    return PolicyTable([
        ("/health", SYSTEM),
        ("/admin/login", LOGIN),
        ("/admin/platform", PLATFORM_ADMIN),
        ("/admin", ADMIN),
        ("/", PUBLIC),
    ])
