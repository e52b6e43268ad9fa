from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from src.tenancy.models import Tenant


class TenantDirectory(ABC):
    """Read access to provisioned, non-deleted tenants. ``None`` means not found."""

    @abstractmethod
    def find_by_subdomain(self, subdomain: str) -> Optional[Tenant]:
        pass

    @abstractmethod
    def find_by_custom_domain(self, domain: str) -> Optional[Tenant]:
        pass

    @abstractmethod
    def find_by_id(self, tenant_id: int) -> Optional[Tenant]:
        pass
