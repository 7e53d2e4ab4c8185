"""MBG Watch - API Routers"""
from .auth import router as auth_router
from .reports import router as reports_router
from .admin import router as admin_router

__all__ = [
    "auth_router",
    "reports_router",
    "admin_router",
]
