"""API dependencies for dependency injection and provider context."""

from typing import Optional
from fastapi import Depends, Header, HTTPException, status

from slotbook.config import get_settings
from slotbook.database import AsyncSessionLocal, get_redis
from slotbook.services.calendar_lock import build_calendar_locks
from slotbook.services.engine import SchedulingEngine

settings = get_settings()

_engine: Optional[SchedulingEngine] = None


# =============================================================================
# Scheduling Engine
# =============================================================================

async def get_engine() -> SchedulingEngine:
    """Process-wide scheduling engine; locks are shared across requests."""
    global _engine
    if _engine is None:
        redis = await get_redis() if settings.LOCK_BACKEND == "redis" else None
        _engine = SchedulingEngine.from_session_factory(
            AsyncSessionLocal,
            locks=build_calendar_locks(settings, redis),
            settings=settings,
        )
    return _engine


# =============================================================================
# Provider Context
# =============================================================================

async def get_current_provider(
    x_provider_id: str = Header(..., alias="X-Provider-ID"),
    engine: SchedulingEngine = Depends(get_engine),
) -> str:
    """Get the current provider id from header."""
    provider = await engine.providers.get_settings(x_provider_id)
    
    if not provider:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Provider not found"
        )
    
    return x_provider_id
