"""
Database-facing helpers for listing enforcement

Shared by the vehicles router, the users router (plan cascades), payment
approval and the background sweep.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List

import structlog

from src.database import Collections, DatabaseAdapter
from src.listings.dates import now_iso, sort_key
from src.listings.lifecycle import (
    VehicleUpdates,
    cascade_plan_expiry,
    enforce_plan_limits,
    reconcile_listing_expiry,
)
from src.marketplace.cache import invalidate_vehicle_cache

logger = structlog.get_logger()


def newest_first(records: List[Dict[str, Any]], field: str = "createdAt") -> List[Dict[str, Any]]:
    return sorted(records, key=lambda r: sort_key(r.get(field)), reverse=True)


async def published_vehicles(db: DatabaseAdapter) -> List[Dict[str, Any]]:
    vehicles = await db.find_by_field(Collections.VEHICLES, "status", "published")
    return newest_first(vehicles)


async def seller_vehicles(db: DatabaseAdapter, email: str) -> List[Dict[str, Any]]:
    normalized = email.lower().strip()
    vehicles = await db.find_by_field(Collections.VEHICLES, "sellerEmail", normalized)
    if not vehicles and normalized != email:
        vehicles = await db.find_by_field(Collections.VEHICLES, "sellerEmail", email)
    return vehicles


async def count_active_listings(db: DatabaseAdapter, email: str) -> int:
    vehicles = await seller_vehicles(db, email)
    return sum(1 for v in vehicles if v.get("status") == "published")


async def load_sellers(db: DatabaseAdapter, emails: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Fetch seller documents keyed by lower-cased email"""
    sellers: Dict[str, Dict[str, Any]] = {}
    for email in {e.lower().strip() for e in emails if e}:
        seller = await db.find_by_email(email)
        if seller:
            sellers[email] = seller
    return sellers


async def apply_vehicle_updates(db: DatabaseAdapter, updates: VehicleUpdates) -> int:
    """Persist per-vehicle updates; failures are logged and skipped"""
    applied = 0
    timestamp = now_iso()
    for vehicle_id, fields in updates.items():
        try:
            await db.update(Collections.VEHICLES, str(vehicle_id), {**fields, "updatedAt": timestamp})
            applied += 1
        except Exception as e:
            logger.error("vehicle_update_failed", vehicle_id=vehicle_id, error=str(e))
    if applied:
        invalidate_vehicle_cache()
    return applied


def _combine(first: VehicleUpdates, second: VehicleUpdates) -> VehicleUpdates:
    combined = {k: dict(v) for k, v in first.items()}
    for vehicle_id, fields in second.items():
        combined.setdefault(vehicle_id, {}).update(fields)
    return combined


async def sync_listing_states(
    db: DatabaseAdapter,
    vehicles: List[Dict[str, Any]],
    now: datetime,
    duration_days: int
) -> int:
    """
    Apply expiry reconciliation and plan limits to a set of published listings

    Returns:
        Number of vehicles updated
    """
    sellers = await load_sellers(db, (v.get("sellerEmail") or "" for v in vehicles))
    expiry_updates = reconcile_listing_expiry(vehicles, sellers, now, duration_days)

    # Limits only count listings that stay published after expiry handling
    still_published = [
        {**v, **expiry_updates.get(v.get("id"), {})}
        for v in vehicles
    ]
    limit_updates = enforce_plan_limits(still_published, sellers)

    updates = _combine(expiry_updates, limit_updates)
    if not updates:
        return 0

    applied = await apply_vehicle_updates(db, updates)
    logger.info(
        "listing_states_synced",
        expired=len(expiry_updates),
        suspended=len(limit_updates),
        applied=applied
    )
    return applied


async def cascade_seller_plan(
    db: DatabaseAdapter,
    seller: Dict[str, Any],
    now: datetime,
    duration_days: int
) -> int:
    """
    Push a seller's plan expiry onto their published listings

    Listing query failures are logged and count as zero updates.
    """
    try:
        vehicles = await seller_vehicles(db, seller.get("email") or "")
    except Exception as e:
        logger.error("plan_cascade_failed", seller=seller.get("email"), error=str(e))
        return 0

    updates = cascade_plan_expiry(seller, vehicles, now, duration_days)
    applied = await apply_vehicle_updates(db, updates)
    if applied:
        logger.info("plan_expiry_cascaded", seller=seller.get("email"), vehicles=applied)
    return applied
