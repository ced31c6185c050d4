# src/routers/__init__.py
from . import connections_router
from . import discovery_router
from . import org_admin_router
from . import profile_router

__all__ = [
    "connections_router",
    "discovery_router",
    "org_admin_router",
    "profile_router"
]
