"""
Tenancy: camp sites, the directory port and host → tenant resolution.
"""
from .models import Tenant
from .ports import TenantDirectory
from .resolver import TenantResolver, extract_subdomain, normalize_host

__all__ = ["Tenant", "TenantDirectory", "TenantResolver", "extract_subdomain", "normalize_host"]
