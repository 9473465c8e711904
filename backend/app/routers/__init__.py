"""CivicEye - API Routers"""
from .auth import router as auth_router
from .users import router as users_router
from .grievances import router as grievances_router
from .feedbacks import router as feedbacks_router
from .notifications import router as notifications_router
from .dashboard import router as dashboard_router
from .admin import router as admin_router

__all__ = [
    "auth_router",
    "users_router",
    "grievances_router",
    "feedbacks_router",
    "notifications_router",
    "dashboard_router",
    "admin_router",
]
