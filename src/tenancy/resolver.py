"""
Host → tenant resolution with a process-local TTL cache.

Lookup order on a cache miss: exact custom-domain match, then a single-label
subdomain of the configured base domain. Hits are cached for
``TENANT_CACHE_TTL_SECONDS``; misses are never cached, so unknown hosts always
reach the directory.

The cache is not coherent with directory writes: a deleted site or a moved
custom domain keeps resolving until its entry expires.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from src.shared.exceptions import TenantNotFoundError
from src.shared.logging import get_logger
from src.tenancy.models import Tenant
from src.tenancy.ports import TenantDirectory

logger = get_logger(__name__)

TENANT_CACHE_TTL_SECONDS = 60.0


def normalize_host(host: str) -> str:
    """Lowercase a Host header value and strip a trailing ``:port``."""
    host = (host or "").strip().lower()
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    name, sep, port = host.rpartition(":")
    if sep and port.isdigit() and ":" not in name:
        return name
    return host


def extract_subdomain(host: str, base_domain: str) -> Optional[str]:
    """
    ``camp.example.org`` with base ``example.org`` → ``camp``.
    Nested labels (``a.b.example.org``) are unsupported and yield None.
    """
    suffix = "." + base_domain.lower()
    if not host.endswith(suffix):
        return None
    subdomain = host[: -len(suffix)]
    if not subdomain or "." in subdomain:
        return None
    return subdomain


@dataclass(frozen=True)
class CacheEntry:
    tenant: Tenant
    expires_at: float


class TenantCache:
    """
    Concurrent host → CacheEntry map. The lock only guards dict operations;
    callers never hold it across directory I/O.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, host: str, now: float) -> Optional[Tenant]:
        with self._lock:
            entry = self._entries.get(host)
            if entry is None:
                return None
            if now < entry.expires_at:
                return entry.tenant
            # expired: drop lazily on first read
            del self._entries[host]
            return None

    def put(self, host: str, tenant: Tenant, expires_at: float) -> None:
        # last write wins; concurrent misses store the same tenant
        with self._lock:
            self._entries[host] = CacheEntry(tenant=tenant, expires_at=expires_at)

    def invalidate(self, host: str) -> None:
        with self._lock:
            self._entries.pop(host, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class TenantResolver:
    def __init__(
        self,
        directory: TenantDirectory,
        base_domain: str,
        *,
        ttl_seconds: float = TENANT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._directory = directory
        self._base_domain = base_domain.strip().lower()
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache = TenantCache()

    @property
    def cache(self) -> TenantCache:
        return self._cache

    def resolve(self, host_header: str) -> Tenant:
        """Return the tenant serving ``host_header`` or raise TenantNotFoundError."""
        host = normalize_host(host_header)
        if not host:
            raise TenantNotFoundError("empty host")

        cached = self._cache.get(host, self._clock())
        if cached is not None:
            return cached

        tenant = self._directory.find_by_custom_domain(host)
        if tenant is None:
            subdomain = extract_subdomain(host, self._base_domain)
            if subdomain is not None:
                tenant = self._directory.find_by_subdomain(subdomain)

        if tenant is None:
            logger.debug("tenant_not_found", host=host)
            raise TenantNotFoundError(f"no tenant for host {host!r}")

        self._cache.put(host, tenant, self._clock() + self._ttl)
        return tenant

    def invalidate(self, host_header: str) -> None:
        self._cache.invalidate(normalize_host(host_header))

    def clear(self) -> None:
        self._cache.clear()
