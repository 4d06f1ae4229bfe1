"""HTTP routers for the integrity service."""

from integrity.routes.admin import router as admin_router
from integrity.routes.integrity import router as integrity_router

__all__ = ["admin_router", "integrity_router"]
