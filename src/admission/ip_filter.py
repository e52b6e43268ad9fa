from __future__ import annotations

from functools import lru_cache
from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network, ip_address, ip_network
from typing import Iterable, List, Optional, Tuple, Union

from src.shared.logging import get_logger
from src.tenancy.models import Tenant

logger = get_logger(__name__)

IPAddress = Union[IPv4Address, IPv6Address]
IPNetwork = Union[IPv4Network, IPv6Network]

FORWARDED_FOR_HEADER = "X-Forwarded-For"


def _strip_port(addr: str) -> str:
    """``[::1]:8080`` → ``::1``, ``10.0.0.1:443`` → ``10.0.0.1``; bare addresses pass through."""
    addr = addr.strip()
    if addr.startswith("["):
        end = addr.find("]")
        return addr[1:end] if end != -1 else addr
    if addr.count(":") == 1:
        return addr.split(":", 1)[0]
    return addr


def extract_client_ip(forwarded_for: Optional[str], peer: Optional[str]) -> Optional[str]:
    """
    First address of X-Forwarded-For when present, else the transport peer.
    Proxies are trusted as-is; the forwarded chain is not validated.
    """
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return _strip_port(first)
    if not peer:
        return None
    return _strip_port(peer)


def _parse_ip(value: Optional[str]) -> Optional[IPAddress]:
    if not value:
        return None
    try:
        return ip_address(value)
    except ValueError:
        return None


@lru_cache(maxsize=1024)
def _parse_allowlist(raw: str) -> Optional[Tuple[int, Tuple[IPNetwork, ...]]]:
    """
    (declared entry count, parsed networks) for a stored allowlist, or None
    when the stored value is unparsable. Keyed by the raw string so each
    distinct allowlist is parsed once.
    """
    tenant = Tenant(id=0, subdomain="", owner_user_id=0, allowed_ips=raw)
    try:
        cidrs = tenant.get_allowed_ips()
    except ValueError:
        return None
    networks: List[IPNetwork] = []
    for cidr in cidrs:
        try:
            networks.append(ip_network(cidr, strict=False))
        except ValueError:
            # a single bad entry never widens access; it just matches nothing
            continue
    return len(cidrs), tuple(networks)


class IPFilter:
    """
    Global blocklist plus optional per-site allowlist.

    Order: blocklist → (no site: allow) → site allowlist if non-empty.
    An allowlist that cannot be parsed blocks everything (fail closed).
    """

    def __init__(self, global_blocklist: Optional[Iterable[str]] = None) -> None:
        self._blocked: List[IPNetwork] = []
        for cidr in global_blocklist or []:
            try:
                self._blocked.append(ip_network(cidr, strict=False))
            except ValueError:
                logger.warning("blocklist_entry_invalid", cidr=cidr)

    def allow(self, client_ip: Optional[str], tenant: Optional[Tenant]) -> bool:
        ip = _parse_ip(client_ip)
        if ip is None:
            return False

        if any(ip in net for net in self._blocked):
            return False

        if tenant is None:
            return True

        if not tenant.allowed_ips:
            return True
        parsed = _parse_allowlist(tenant.allowed_ips)
        if parsed is None:
            logger.warning("tenant_allowlist_unparsable", tenant_id=tenant.id)
            return False
        declared, networks = parsed
        if declared == 0:
            return True
        return any(ip in net for net in networks)
