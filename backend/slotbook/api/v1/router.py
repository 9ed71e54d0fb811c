"""Main router for API v1."""

from fastapi import APIRouter

from slotbook.api.v1 import availability, blocked_periods, reservations, slots

api_router = APIRouter()

# =============================================================================
# Public booking flow
# =============================================================================
api_router.include_router(
    slots.router,
    prefix="/slots",
    tags=["Slots"]
)
api_router.include_router(
    reservations.router,
    prefix="/reservation",
    tags=["Reservations"]
)

# =============================================================================
# Provider configuration
# =============================================================================
api_router.include_router(
    availability.router,
    prefix="/availability",
    tags=["Availability"]
)
api_router.include_router(
    blocked_periods.router,
    prefix="/blocked-periods",
    tags=["Blocked Periods"]
)
