from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Request, status

from src.auth import TokenUser, require_admin, require_user
from src.config import get_api_config
from src.database import Collections, DatabaseAdapter, get_db_client
from src.errors import ApiError
from src.listings.dates import add_days, epoch_ms, now_iso, to_iso, utcnow
from src.listings.fallback import FALLBACK_VEHICLES
from src.listings.lifecycle import (
    build_boost,
    check_listing_allowance,
    city_stats,
    compute_listing_expiry,
    feature_listing,
    normalize_images,
    request_certification,
    vehicles_within_radius,
)
from src.marketplace.cache import PUBLISHED_VEHICLES_KEY, get_vehicle_cache, invalidate_vehicle_cache
from src.marketplace.dependencies import logger
from src.marketplace.listings import (
    count_active_listings,
    newest_first,
    published_vehicles,
    sync_listing_states,
)
from src.marketplace.responses import created, fallback
from src.marketplace.routers.catalog import load_vehicle_catalog

router = APIRouter(prefix="/api/vehicles", tags=["Vehicles"])


def _lowercase_seller(vehicle: Dict[str, Any]) -> Dict[str, Any]:
    email = vehicle.get("sellerEmail")
    if isinstance(email, str):
        return {**vehicle, "sellerEmail": email.lower().strip()}
    return vehicle


def _paginate(vehicles: List[Dict[str, Any]], page: int, limit: int) -> Dict[str, Any]:
    total = len(vehicles)
    page = max(page, 1)
    start = (page - 1) * limit
    pages = (total + limit - 1) // limit if total else 0
    return {
        "vehicles": vehicles[start:start + limit],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "hasMore": start + limit < total,
        },
    }


async def _load_published(db: DatabaseAdapter, skip_expiry_check: bool) -> List[Dict[str, Any]]:
    """Published listings, from cache when fresh"""
    cache = get_vehicle_cache()
    cached = cache.get(PUBLISHED_VEHICLES_KEY)
    if cached is not None:
        return cached["vehicles"]

    vehicles = await published_vehicles(db)
    if not skip_expiry_check and vehicles:
        config = get_api_config()
        changed = await sync_listing_states(db, vehicles, utcnow(), config.listing_duration_days)
        if changed:
            vehicles = await published_vehicles(db)

    vehicles = [_lowercase_seller(v) for v in vehicles]
    cache.set(PUBLISHED_VEHICLES_KEY, {"vehicles": vehicles, "totalCount": len(vehicles)})
    return vehicles


@router.get("")
async def get_vehicles(
    request: Request,
    type: Optional[str] = None,
    action: Optional[str] = None,
    city: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius: float = 10,
    page: int = 1,
    limit: int = 50,
    skipExpiryCheck: bool = False,
):
    """
    Published listings plus the catalog, city statistics, radius search
    and the admin listing view
    """
    if type == "data":
        return await load_vehicle_catalog()

    if action == "admin-all":
        await require_admin(request)
        db = get_db_client()
        vehicles = await db.find_all(Collections.VEHICLES)
        return [_lowercase_seller(v) for v in newest_first(vehicles)]

    try:
        db = get_db_client()
        vehicles = await _load_published(db, skipExpiryCheck)
    except Exception as e:
        logger.error("vehicle_list_failed", error=str(e))
        return fallback(FALLBACK_VEHICLES)

    if action == "city-stats":
        if not city:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "City is required.")
        return {"success": True, "city": city, "stats": city_stats(vehicles, city)}

    if action == "radius-search":
        if lat is None or lng is None:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "lat and lng are required.")
        matches = vehicles_within_radius(vehicles, lat, lng, radius)
        return {"success": True, "vehicles": matches, "count": len(matches)}

    if limit <= 0:
        return vehicles
    return _paginate(vehicles, page, limit)


# ===== POST ACTIONS =====

async def _get_vehicle(db: DatabaseAdapter, vehicle_id: Any) -> Dict[str, Any]:
    if vehicle_id is None or vehicle_id == "":
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Vehicle ID is required.")
    vehicle = await db.find_by_id(Collections.VEHICLES, str(vehicle_id))
    if vehicle is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Vehicle not found.")
    return vehicle


def _owns(user: TokenUser, vehicle: Dict[str, Any]) -> bool:
    return user.owns(vehicle.get("sellerEmail"))


def _require_owner(user: TokenUser, vehicle: Dict[str, Any], allow_admin: bool = False) -> None:
    if _owns(user, vehicle) or (allow_admin and user.is_admin):
        return
    raise ApiError(status.HTTP_403_FORBIDDEN, "You do not have permission to modify this vehicle.")


async def _save(db: DatabaseAdapter, vehicle_id: Any, updates: Dict[str, Any]) -> Dict[str, Any]:
    updates = {**updates, "updatedAt": now_iso()}
    await db.update(Collections.VEHICLES, str(vehicle_id), updates)
    invalidate_vehicle_cache()
    return await db.find_by_id(Collections.VEHICLES, str(vehicle_id))


async def _next_vehicle_id(db: DatabaseAdapter) -> int:
    """Millisecond timestamp, bumped until unused"""
    vehicle_id = epoch_ms()
    while await db.find_by_id(Collections.VEHICLES, str(vehicle_id)) is not None:
        vehicle_id += 1
    return vehicle_id


async def _track_view(db: DatabaseAdapter, body: Dict[str, Any]) -> Dict[str, Any]:
    vehicle = await _get_vehicle(db, body.get("vehicleId"))
    views = int(vehicle.get("views") or 0) + 1
    await db.update(Collections.VEHICLES, str(vehicle["id"]), {"views": views})
    return {"success": True, "views": views}


async def _refresh(db: DatabaseAdapter, user: TokenUser, body: Dict[str, Any]) -> Dict[str, Any]:
    vehicle = await _get_vehicle(db, body.get("vehicleId"))
    _require_owner(user, vehicle)

    refresh_action = body.get("refreshAction")
    if refresh_action == "refresh":
        updates = {"views": 0, "inquiriesCount": 0}
    elif refresh_action == "renew":
        config = get_api_config()
        updates = {
            "listingExpiresAt": to_iso(add_days(utcnow(), config.listing_duration_days)),
            "listingStatus": "active",
            "status": "published",
        }
    else:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "refreshAction must be refresh or renew.")

    updated = await _save(db, vehicle["id"], updates)
    logger.info("vehicle_refreshed", vehicle_id=vehicle["id"], refresh_action=refresh_action)
    return {"success": True, "vehicle": updated}


async def _boost(db: DatabaseAdapter, user: TokenUser, body: Dict[str, Any]) -> Dict[str, Any]:
    vehicle = await _get_vehicle(db, body.get("vehicleId"))
    _require_owner(user, vehicle)
    if not body.get("packageId"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Package ID is required.")

    boost = build_boost(vehicle["id"], body["packageId"], utcnow())
    boosts = list(vehicle.get("activeBoosts") or []) + [boost]
    updated = await _save(db, vehicle["id"], {"activeBoosts": boosts, "isFeatured": True})
    logger.info("vehicle_boosted", vehicle_id=vehicle["id"], boost_type=boost["type"])
    return {"success": True, "vehicle": updated, "boost": boost}


async def _certify(
    db: DatabaseAdapter,
    user: TokenUser,
    seller: Dict[str, Any],
    body: Dict[str, Any]
) -> Dict[str, Any]:
    vehicle = await _get_vehicle(db, body.get("vehicleId"))
    _require_owner(user, vehicle)

    if vehicle.get("certificationStatus") in ("requested", "certified"):
        return {
            "success": True,
            "alreadyRequested": True,
            "message": "Certification has already been requested for this vehicle.",
            "vehicle": vehicle,
        }

    used, remaining = request_certification(seller)
    updated = await _save(db, vehicle["id"], {
        "certificationStatus": "requested",
        "certificationRequestedAt": now_iso(),
    })
    await db.update(Collections.USERS, seller["id"], {"usedCertifications": used})
    logger.info("certification_requested", vehicle_id=vehicle["id"], seller=seller.get("email"))
    return {
        "success": True,
        "vehicle": updated,
        "usedCertifications": used,
        "remainingCertifications": remaining,
    }


async def _feature(db: DatabaseAdapter, user: TokenUser, body: Dict[str, Any]) -> Dict[str, Any]:
    vehicle = await _get_vehicle(db, body.get("vehicleId"))
    _require_owner(user, vehicle, allow_admin=True)

    if vehicle.get("isFeatured"):
        return {
            "success": True,
            "alreadyFeatured": True,
            "message": "Vehicle is already featured.",
            "vehicle": vehicle,
        }

    # Credits are charged to the listing's seller, also when an admin features it
    seller = await db.find_by_email(vehicle.get("sellerEmail") or "")
    if seller is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Seller not found.")

    remaining = feature_listing(seller)
    updated = await _save(db, vehicle["id"], {"isFeatured": True, "featuredAt": now_iso()})
    await db.update(Collections.USERS, seller["id"], {"featuredCredits": remaining})
    logger.info("vehicle_featured", vehicle_id=vehicle["id"], remaining_credits=remaining)
    return {"success": True, "vehicle": updated, "remainingCredits": remaining}


async def _mark_sold(db: DatabaseAdapter, user: TokenUser, body: Dict[str, Any], sold: bool) -> Dict[str, Any]:
    vehicle = await _get_vehicle(db, body.get("vehicleId"))
    _require_owner(user, vehicle, allow_admin=True)

    if sold:
        updates = {"status": "sold", "listingStatus": "sold", "soldAt": now_iso()}
    else:
        updates = {"status": "published", "listingStatus": "active", "soldAt": None}
    updated = await _save(db, vehicle["id"], updates)
    logger.info("vehicle_sold_state_changed", vehicle_id=vehicle["id"], sold=sold)
    return {"success": True, "vehicle": updated}


async def _create_vehicle(db: DatabaseAdapter, user: TokenUser, seller: Dict[str, Any], body: Dict[str, Any]):
    if user.role not in ("seller", "admin"):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Only sellers can create listings.")

    now = utcnow()
    active = await count_active_listings(db, user.email)
    check_listing_allowance(seller, active, now)

    vehicle_id = await _next_vehicle_id(db)
    timestamp = to_iso(now)
    expires_at = compute_listing_expiry(seller, now)

    vehicle = {k: v for k, v in body.items() if k not in ("action", "id", "_id")}
    vehicle.update({
        "id": vehicle_id,
        "sellerEmail": user.email,
        "images": normalize_images(body.get("images")),
        "status": body.get("status") or "published",
        "listingStatus": "active",
        "listingExpiresAt": expires_at,
        "views": 0,
        "inquiriesCount": 0,
        "createdAt": timestamp,
        "updatedAt": timestamp,
    })

    await db.create(Collections.VEHICLES, vehicle, str(vehicle_id))
    invalidate_vehicle_cache()
    logger.info("vehicle_created", vehicle_id=vehicle_id, seller=user.email)
    return created(await db.find_by_id(Collections.VEHICLES, str(vehicle_id)))


@router.post("")
async def vehicle_action(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    """Create a listing or run a listing action"""
    body = body or {}
    action = body.get("action")
    db = get_db_client()

    if action == "track-view":
        return await _track_view(db, body)

    user = await require_user(request)
    seller = await db.find_by_email(user.email)
    if seller is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "User not found.")

    if action is None:
        return await _create_vehicle(db, user, seller, body)
    if action == "refresh":
        return await _refresh(db, user, body)
    if action == "boost":
        return await _boost(db, user, body)
    if action == "certify":
        return await _certify(db, user, seller, body)
    if action == "feature":
        return await _feature(db, user, body)
    if action in ("sold", "unsold"):
        return await _mark_sold(db, user, body, sold=action == "sold")

    raise ApiError(status.HTTP_400_BAD_REQUEST, f"Invalid action: {action}")


# ===== UPDATE / DELETE =====

@router.put("")
async def update_vehicle(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    db = get_db_client()
    vehicle = await _get_vehicle(db, body.get("id"))
    _require_owner(user, vehicle, allow_admin=True)

    updates = {k: v for k, v in body.items() if k not in ("id", "_id", "createdAt")}
    if not user.is_admin:
        updates.pop("sellerEmail", None)
    if "images" in updates:
        updates["images"] = normalize_images(updates["images"])

    updated = await _save(db, vehicle["id"], updates)
    logger.info("vehicle_updated", vehicle_id=vehicle["id"], by=user.email)
    return updated


@router.delete("")
async def delete_vehicle(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    db = get_db_client()
    vehicle = await _get_vehicle(db, body.get("id"))
    _require_owner(user, vehicle, allow_admin=True)

    await db.delete(Collections.VEHICLES, str(vehicle["id"]))
    invalidate_vehicle_cache()
    logger.info("vehicle_deleted", vehicle_id=vehicle["id"], by=user.email)
    return {"success": True, "message": "Vehicle deleted successfully.", "id": vehicle["id"]}
