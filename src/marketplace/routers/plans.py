from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, status

from src.auth import TokenUser, require_admin
from src.database import Collections, DatabaseAdapter, get_db_client
from src.errors import ApiError
from src.listings.dates import now_iso
from src.listings.plans import (
    BASE_PLAN_IDS,
    MAX_PLANS,
    PLAN_DETAILS,
    can_add_new_plan,
    merge_plan_rows,
    plan_from_record,
)
from src.marketplace.dependencies import logger
from src.marketplace.responses import created, timestamped_id

router = APIRouter(prefix="/api/plans", tags=["Plans"])

PLAN_FIELDS = (
    "name",
    "price",
    "features",
    "listingLimit",
    "featuredCredits",
    "freeCertifications",
    "isMostPopular",
)


async def load_plans(db: DatabaseAdapter) -> List[Dict[str, Any]]:
    rows = await db.find_all(Collections.PLANS)
    return merge_plan_rows(rows)


async def find_plan(db: DatabaseAdapter, plan_id: str) -> Optional[Dict[str, Any]]:
    for plan in await load_plans(db):
        if plan["id"] == plan_id:
            return plan
    return None


def _plan_fields(body: Dict[str, Any]) -> Dict[str, Any]:
    return {k: body[k] for k in PLAN_FIELDS if k in body}


@router.get("")
async def list_plans():
    """Base plans followed by custom plans"""
    try:
        db = get_db_client()
        return await load_plans(db)
    except Exception as e:
        logger.warning("plans_unavailable", error=str(e))
        return [dict(PLAN_DETAILS[plan_id]) for plan_id in BASE_PLAN_IDS]


@router.post("")
async def create_plan(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    if not body.get("name"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Plan name is required.")

    db = get_db_client()
    plans = await load_plans(db)
    if not can_add_new_plan(plans):
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            f"Maximum of {MAX_PLANS} plans reached. Delete a custom plan before adding another."
        )

    plan_id = timestamped_id("custom")
    row = {**_plan_fields(body), "createdAt": now_iso(), "updatedAt": now_iso()}
    await db.create(Collections.PLANS, row, plan_id)
    logger.info("plan_created", plan_id=plan_id, by=admin.email)
    return created(plan_from_record(plan_id, row))


@router.put("")
async def update_plan(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    plan_id = body.get("planId")
    if not plan_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "planId is required.")

    db = get_db_client()
    current = await find_plan(db, plan_id)
    if current is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Plan not found.")

    row = {**current, **_plan_fields(body), "updatedAt": now_iso()}
    row.pop("id", None)
    if await db.find_by_id(Collections.PLANS, plan_id):
        await db.update(Collections.PLANS, plan_id, row)
    else:
        await db.create(Collections.PLANS, row, plan_id)

    logger.info("plan_updated", plan_id=plan_id, by=admin.email)
    return plan_from_record(plan_id, row)


@router.delete("")
async def delete_plan(planId: Optional[str] = None, admin: TokenUser = Depends(require_admin)):
    if not planId:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "planId is required.")
    if planId in BASE_PLAN_IDS:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Base plans cannot be deleted.")

    db = get_db_client()
    if await db.find_by_id(Collections.PLANS, planId) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Plan not found.")

    await db.delete(Collections.PLANS, planId)
    logger.info("plan_deleted", plan_id=planId, by=admin.email)
    return {"success": True, "message": "Plan deleted successfully."}
