"""
Brand/model/variant catalog and the new-car reference table
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, status

from src.auth import TokenUser, require_admin
from src.database import Collections, get_db_client
from src.errors import ApiError
from src.listings.dates import epoch_ms, now_iso, sort_key
from src.listings.fallback import DEFAULT_VEHICLE_DATA
from src.marketplace.dependencies import logger
from src.marketplace.responses import created, fallback

CATALOG_RECORD_ID = "catalog"

vehicle_data_router = APIRouter(prefix="/api/vehicle-data", tags=["Vehicle Data"])
new_cars_router = APIRouter(prefix="/api/new-cars", tags=["New Cars"])


async def load_vehicle_catalog():
    """Stored catalog, or the default one flagged as fallback data"""
    try:
        db = get_db_client()
        record = await db.find_by_id(Collections.VEHICLE_DATA, CATALOG_RECORD_ID)
    except Exception as e:
        logger.warning("vehicle_catalog_unavailable", error=str(e))
        return fallback(DEFAULT_VEHICLE_DATA)

    if not record:
        return fallback(DEFAULT_VEHICLE_DATA)
    return record.get("data") or DEFAULT_VEHICLE_DATA


# ===== VEHICLE DATA =====

@vehicle_data_router.get("")
async def get_vehicle_data():
    return await load_vehicle_catalog()


@vehicle_data_router.post("")
async def replace_vehicle_data(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    """Replace the whole catalog"""
    if not body:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Vehicle data is required.")

    db = get_db_client()
    record = {"data": body, "updatedAt": now_iso(), "updatedBy": admin.email}
    if await db.find_by_id(Collections.VEHICLE_DATA, CATALOG_RECORD_ID):
        await db.update(Collections.VEHICLE_DATA, CATALOG_RECORD_ID, record)
    else:
        await db.create(Collections.VEHICLE_DATA, record, CATALOG_RECORD_ID)

    logger.info("vehicle_catalog_replaced", by=admin.email, categories=len(body))
    return {"success": True, "data": body}


# ===== NEW CARS =====

def _slug(value: Any) -> str:
    return str(value).strip().lower().replace(" ", "-")


@new_cars_router.get("")
async def list_new_cars():
    db = get_db_client()
    cars = await db.find_all(Collections.NEW_CARS)
    return sorted(cars, key=lambda c: sort_key(c.get("updatedAt")), reverse=True)


@new_cars_router.post("")
async def create_new_car(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    if not body.get("brand_name") or not body.get("model_name") or not body.get("model_year"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "brand_name, model_name and model_year are required.")

    car_id = f"{_slug(body['brand_name'])}_{_slug(body['model_name'])}_{body['model_year']}_{epoch_ms()}"
    timestamp = now_iso()
    record = {**body, "id": car_id, "createdAt": timestamp, "updatedAt": timestamp}

    db = get_db_client()
    await db.create(Collections.NEW_CARS, record, car_id)
    logger.info("new_car_created", car_id=car_id, by=admin.email)
    return created(record)


@new_cars_router.put("")
async def update_new_car(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    car_id = body.get("id")
    if not car_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "id is required.")

    db = get_db_client()
    if await db.find_by_id(Collections.NEW_CARS, car_id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "New car not found.")

    updates = {k: v for k, v in body.items() if k not in ("id", "createdAt")}
    updates["updatedAt"] = now_iso()
    await db.update(Collections.NEW_CARS, car_id, updates)
    return await db.find_by_id(Collections.NEW_CARS, car_id)


@new_cars_router.delete("")
async def delete_new_car(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    car_id = body.get("id")
    if not car_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "id is required.")

    db = get_db_client()
    if await db.find_by_id(Collections.NEW_CARS, car_id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "New car not found.")

    await db.delete(Collections.NEW_CARS, car_id)
    logger.info("new_car_deleted", car_id=car_id, by=admin.email)
    return {"success": True, "id": car_id}
