"""
Blocked period sweep worker.
Deletes blocked periods that ended before today, for every active provider.
Runs once a day.
"""

import asyncio
import logging
from datetime import date
from typing import Optional

from slotbook.database import AsyncSessionLocal
from slotbook.services.engine import SchedulingEngine

logger = logging.getLogger(__name__)


async def sweep_blocked_periods(engine: Optional[SchedulingEngine] = None) -> int:
    """
    Main sweep job.
    Returns the total number of periods removed.
    """
    engine = engine or SchedulingEngine.from_session_factory(AsyncSessionLocal)
    
    total = 0
    for provider_id in await engine.providers.list_active_ids():
        total += await _sweep_provider(engine, provider_id)
    
    logger.info("Blocked period sweep removed %d period(s)", total)
    return total


async def _sweep_provider(engine: SchedulingEngine, provider_id: str) -> int:
    """Sweep one provider, using its own local date."""
    today: date = await engine.provider_today(provider_id)
    async with engine.stores() as stores:
        return await stores.blocked_periods.sweep_past(provider_id, today)


# Entry point for running as standalone script
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(sweep_blocked_periods())
