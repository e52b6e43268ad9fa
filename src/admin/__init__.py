"""Site admin surface: login/logout, dashboard, platform (global admin) views."""
from src.admin.routes import public_router, router

__all__ = ["public_router", "router"]
