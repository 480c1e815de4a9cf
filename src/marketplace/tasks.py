import asyncio
import structlog

from src.config import get_api_config
from src.database import DatabaseAdapter, get_db_client
from src.listings.dates import utcnow
from src.marketplace.cache import get_vehicle_cache, invalidate_vehicle_cache
from src.marketplace.listings import published_vehicles, sync_listing_states
from src.marketplace.websocket import get_websocket_manager

logger = structlog.get_logger()


async def sweep_listings(db: DatabaseAdapter) -> int:
    """Expire and suspend published listings; returns the number updated"""
    config = get_api_config()
    vehicles = await published_vehicles(db)
    updated = await sync_listing_states(db, vehicles, utcnow(), config.listing_duration_days)
    invalidate_vehicle_cache()
    return updated


async def run_listing_maintenance():
    """Background task that keeps listing states in line with seller plans"""
    interval = get_api_config().listing_sweep_interval_seconds

    while True:
        try:
            await asyncio.sleep(interval)

            # Each step fails independently so one error doesn't block the other
            try:
                db = get_db_client()
                updated = await sweep_listings(db)
                if updated > 0:
                    logger.info("listing_sweep_applied", count=updated)
            except Exception as e:
                logger.error("listing_sweep_error", error=str(e))

            try:
                get_vehicle_cache().cleanup()
                await get_websocket_manager().cleanup_stale_channels()
            except Exception as e:
                logger.error("cache_cleanup_error", error=str(e))

        except asyncio.CancelledError:
            logger.info("listing_maintenance_stopped")
            raise
        except Exception as e:
            logger.error("listing_maintenance_error", error=str(e))
            await asyncio.sleep(60)
