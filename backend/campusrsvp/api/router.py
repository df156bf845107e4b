"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from campusrsvp.api.routes import admin, events, notifications, rsvps

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events.router)
api_router.include_router(rsvps.router)
api_router.include_router(notifications.router)
api_router.include_router(admin.router)
