"""
API v1 Router

Tenant-scoped endpoints take the org from the caller's token; routes that
carry an {orgId} in the path check it against the token.
"""

from fastapi import APIRouter
from . import (
    audit,
    auth,
    availability,
    bookings,
    bootstrap,
    clients,
    embed_configs,
    notifications,
    organizations,
    reminders,
    users,
    volunteers,
)

router = APIRouter()

router.include_router(bootstrap.router, prefix="/bootstrap", tags=["Bootstrap"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(organizations.router, prefix="/orgs", tags=["Organizations"])
router.include_router(
    availability.router, prefix="/sites/{siteId}/availability", tags=["Availability"]
)
router.include_router(bookings.site_router, prefix="/sites/{siteId}/bookings", tags=["Bookings"])
router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
router.include_router(embed_configs.router, prefix="/embed-configs", tags=["Embed Configs"])
router.include_router(clients.router, prefix="/clients", tags=["Clients"])
router.include_router(audit.router, prefix="/audit", tags=["Audit"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(reminders.router, prefix="/reminders", tags=["Reminders"])
router.include_router(volunteers.volunteers_router, prefix="/volunteers", tags=["Volunteers"])
router.include_router(volunteers.shifts_router, prefix="/shifts", tags=["Volunteers"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/bootstrap",
            "/auth",
            "/users/me",
            "/orgs",
            "/orgs/{orgId}/sites",
            "/sites/{siteId}/availability",
            "/sites/{siteId}/bookings",
            "/bookings",
            "/embed-configs",
            "/clients",
            "/audit",
            "/notifications/preferences",
            "/reminders",
            "/volunteers",
            "/shifts",
        ],
    }
