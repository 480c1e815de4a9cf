"""
Sell-my-car submissions and per-buyer activity records
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from src.auth import TokenUser, require_admin, require_user
from src.database import Collections, email_to_key, get_db_client
from src.errors import ApiError
from src.listings.dates import now_iso, sort_key
from src.marketplace.dependencies import logger
from src.marketplace.models import SubmissionStatus
from src.marketplace.responses import created, timestamped_id

sell_car_router = APIRouter(prefix="/api/sell-car", tags=["Sell Car"])
buyer_activity_router = APIRouter(prefix="/api/buyer-activity", tags=["Buyer Activity"])

SUBMISSION_FIELDS = (
    "registration",
    "make",
    "model",
    "variant",
    "year",
    "district",
    "noOfOwners",
    "kilometers",
    "fuelType",
    "transmission",
    "customerContact",
)
SEARCH_FIELDS = ("registration", "make", "model", "customerContact")
SUBMISSION_STATUSES = [s.value for s in SubmissionStatus]


# ===== SELL CAR =====

@sell_car_router.post("")
async def submit_car(body: Optional[Dict[str, Any]] = Body(default=None)):
    body = body or {}
    missing = [field for field in SUBMISSION_FIELDS if body.get(field) in (None, "")]
    if missing:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing required fields.", missingFields=missing)

    registration = str(body["registration"]).strip().upper()
    db = get_db_client()
    if await db.find_by_field(Collections.SELL_CAR_SUBMISSIONS, "registration", registration):
        raise ApiError(status.HTTP_409_CONFLICT, "A car with this registration number has already been submitted.")

    submission_id = timestamped_id("submission")
    timestamp = now_iso()
    record = {
        **{k: v for k, v in body.items() if k != "id"},
        "registration": registration,
        "status": SubmissionStatus.PENDING.value,
        "submittedAt": timestamp,
        "updatedAt": timestamp,
    }
    await db.create(Collections.SELL_CAR_SUBMISSIONS, record, submission_id)
    logger.info("sell_car_submitted", submission_id=submission_id, make=record["make"], model=record["model"])
    return created({"success": True, "id": submission_id, "message": "Submission received successfully."})


@sell_car_router.get("")
async def list_submissions(
    page: int = 1,
    limit: int = 10,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    admin: TokenUser = Depends(require_admin),
):
    submissions = await get_db_client().find_all(Collections.SELL_CAR_SUBMISSIONS)

    if status_filter:
        submissions = [s for s in submissions if s.get("status") == status_filter]
    if search:
        needle = search.lower()
        submissions = [
            s for s in submissions
            if any(needle in str(s.get(field) or "").lower() for field in SEARCH_FIELDS)
        ]

    submissions.sort(key=lambda s: sort_key(s.get("submittedAt")), reverse=True)
    total = len(submissions)
    page = max(page, 1)
    limit = max(limit, 1)
    start = (page - 1) * limit
    return {
        "success": True,
        "data": submissions[start:start + limit],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


@sell_car_router.put("")
async def review_submission(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    submission_id = body.get("id")
    if not submission_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Submission id is required.")

    db = get_db_client()
    if await db.find_by_id(Collections.SELL_CAR_SUBMISSIONS, submission_id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Submission not found.")
    if "status" in body and body["status"] not in SUBMISSION_STATUSES:
        raise ApiError(status.HTTP_400_BAD_REQUEST, f"Invalid status. Valid statuses: {', '.join(SUBMISSION_STATUSES)}")

    updates = {k: body[k] for k in ("status", "adminNotes", "estimatedPrice") if k in body}
    updates["updatedAt"] = now_iso()
    await db.update(Collections.SELL_CAR_SUBMISSIONS, submission_id, updates)
    logger.info("sell_car_reviewed", submission_id=submission_id, status=updates.get("status"), by=admin.email)
    return {"success": True, "data": await db.find_by_id(Collections.SELL_CAR_SUBMISSIONS, submission_id)}


@sell_car_router.delete("")
async def delete_submission(id: Optional[str] = None, admin: TokenUser = Depends(require_admin)):
    if not id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Submission id is required.")

    db = get_db_client()
    if await db.find_by_id(Collections.SELL_CAR_SUBMISSIONS, id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Submission not found.")
    await db.delete(Collections.SELL_CAR_SUBMISSIONS, id)
    return {"success": True, "message": "Submission deleted successfully."}


# ===== BUYER ACTIVITY =====

def empty_activity(user_id: str) -> Dict[str, Any]:
    return {
        "userId": user_id,
        "recentlyViewed": [],
        "savedSearches": [],
        "notifications": {"priceDrops": [], "newMatches": []},
    }


def _activity_owner(user: TokenUser, user_id: Optional[str]) -> str:
    target = (user_id or user.email).lower().strip()
    if not (user.is_admin or user.owns(target)):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to buyer activity.")
    return target


@buyer_activity_router.get("")
async def get_buyer_activity(userId: Optional[str] = None, user: TokenUser = Depends(require_user)):
    target = _activity_owner(user, userId)
    record = await get_db_client().find_by_id(Collections.BUYER_ACTIVITY, email_to_key(target))
    return {"success": True, "data": record or empty_activity(target)}


async def _save_activity(body: Optional[Dict[str, Any]], user: TokenUser) -> Dict[str, Any]:
    body = body or {}
    target = _activity_owner(user, body.get("userId"))
    db = get_db_client()
    existing = await db.find_by_id(Collections.BUYER_ACTIVITY, email_to_key(target))

    record = existing or empty_activity(target)
    for field in ("recentlyViewed", "savedSearches"):
        if isinstance(body.get(field), list):
            record[field] = body[field]
    if isinstance(body.get("notifications"), dict):
        notifications = dict(record.get("notifications") or {})
        for field in ("priceDrops", "newMatches"):
            if field in body["notifications"]:
                notifications[field] = body["notifications"][field]
        record["notifications"] = notifications
    record["updatedAt"] = now_iso()
    record.pop("id", None)

    if existing:
        await db.update(Collections.BUYER_ACTIVITY, email_to_key(target), record)
    else:
        await db.create(Collections.BUYER_ACTIVITY, record, email_to_key(target))
    return {"success": True, "data": await db.find_by_id(Collections.BUYER_ACTIVITY, email_to_key(target))}


@buyer_activity_router.post("")
async def create_buyer_activity(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    return await _save_activity(body, user)


@buyer_activity_router.put("")
async def update_buyer_activity(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    return await _save_activity(body, user)
