from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import List, Optional


@dataclass(frozen=True)
class Tenant:
    """
    One camp site sharing the platform process.

    ``allowed_ips`` holds the stored form of the allowlist: a JSON array of
    CIDR strings, or an empty string when the site accepts every address
    (subject to the global blocklist). Tenants are provisioned elsewhere; the
    admission core only reads them.
    """
    id: int
    subdomain: str
    owner_user_id: int
    custom_domain: Optional[str] = None
    allowed_ips: str = ""

    def get_allowed_ips(self) -> List[str]:
        """Parse the stored allowlist. Raises ValueError when it is not a JSON string list."""
        if not self.allowed_ips:
            return []
        parsed = json.loads(self.allowed_ips)
        if not isinstance(parsed, list) or not all(isinstance(c, str) for c in parsed):
            raise ValueError("allowed_ips must be a JSON array of CIDR strings")
        return parsed

    def with_allowed_ips(self, cidrs: List[str]) -> "Tenant":
        return replace(self, allowed_ips=json.dumps(cidrs) if cidrs else "")

    def with_allowed_ip(self, cidr: str) -> "Tenant":
        """Add ``cidr`` to the allowlist; adding an existing entry is a no-op."""
        cidrs = self.get_allowed_ips()
        if cidr in cidrs:
            return self
        return self.with_allowed_ips(cidrs + [cidr])

    def without_allowed_ip(self, cidr: str) -> "Tenant":
        cidrs = self.get_allowed_ips()
        if cidr not in cidrs:
            raise KeyError(f"IP range not found: {cidr}")
        return self.with_allowed_ips([c for c in cidrs if c != cidr])
