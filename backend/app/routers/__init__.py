# backend/app/routers/__init__.py
"""
API routers for the Inventory Value Tracker.

- users: Valuation view, manual sync, profile and inventory refresh
"""

from app.routers.users import router as users_router

__all__ = [
    "users_router",
]
