from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Query, Request, status

from src.auth import TokenUser, require_admin, require_user
from src.config import get_api_config
from src.database import Collections, DatabaseAdapter, get_db_client
from src.errors import ApiError
from src.listings.dates import add_days, now_iso, to_iso, utcnow
from src.listings.plans import FEATURE_CREDIT_LIMITS
from src.marketplace.dependencies import logger
from src.marketplace.listings import cascade_seller_plan, newest_first
from src.marketplace.models import PaymentRequest, PaymentStatus
from src.marketplace.responses import created, timestamped_id
from src.marketplace.routers.plans import find_plan

router = APIRouter(prefix="/api/payments", tags=["Payments"])

PLAN_PERIOD_DAYS = 30
MISSING_ACTION = "Action parameter is required. Valid actions: create, status, approve, reject"


async def _create_request(db: DatabaseAdapter, user: TokenUser, body: Dict[str, Any]):
    seller_email = (body.get("sellerEmail") or "").lower().strip()
    if not seller_email or body.get("amount") in (None, "") or not body.get("plan"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "sellerEmail, amount and plan are required.")
    if not (user.is_admin or user.owns(seller_email)):
        raise ApiError(status.HTTP_403_FORBIDDEN, "You can only create payment requests for your own account.")

    try:
        payment = PaymentRequest(
            id=timestamped_id("payment"),
            sellerEmail=seller_email,
            amount=body["amount"],
            plan=body["plan"],
            paymentMethod=body.get("paymentMethod"),
            transactionId=body.get("transactionId"),
        )
    except ValueError:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Amount must be a number.")

    record = payment.model_dump(mode="json")
    await db.create(Collections.PAYMENT_REQUESTS, record, payment.id)
    logger.info("payment_request_created", payment_id=payment.id, seller=seller_email, plan=payment.plan)
    return created({"success": True, "paymentRequest": record})


async def _upgrade_seller(db: DatabaseAdapter, seller: Dict[str, Any], plan_id: str) -> None:
    """Move the seller onto the purchased plan and cascade the new expiry"""
    plan = await find_plan(db, plan_id)
    credits = plan["featuredCredits"] if plan else FEATURE_CREDIT_LIMITS.get(plan_id, 0)
    now = utcnow()
    await db.update(Collections.USERS, seller["id"], {
        "subscriptionPlan": plan_id,
        "planExpiryDate": to_iso(add_days(now, PLAN_PERIOD_DAYS)),
        "featuredCredits": credits,
        "usedCertifications": 0,
        "updatedAt": to_iso(now),
    })

    upgraded = await db.find_by_email(seller["email"])
    await cascade_seller_plan(db, upgraded, now, get_api_config().listing_duration_days)
    logger.info("seller_plan_upgraded", seller=seller["email"], plan=plan_id)


async def _review_request(db: DatabaseAdapter, admin: TokenUser, body: Dict[str, Any], approve: bool):
    payment_id = body.get("paymentRequestId")
    if not payment_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "paymentRequestId is required.")

    payment = await db.find_by_id(Collections.PAYMENT_REQUESTS, payment_id)
    if payment is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Payment request not found.")
    if payment.get("status") != PaymentStatus.PENDING.value:
        raise ApiError(status.HTTP_400_BAD_REQUEST, f"Payment request is already {payment.get('status')}.")

    updates = {
        "status": (PaymentStatus.APPROVED if approve else PaymentStatus.REJECTED).value,
        "reviewedAt": now_iso(),
        "reviewedBy": admin.email,
    }
    if approve:
        seller = await db.find_by_email(payment["sellerEmail"])
        if seller is None:
            logger.warning("payment_seller_missing", payment_id=payment_id, seller=payment["sellerEmail"])
            raise ApiError(status.HTTP_404_NOT_FOUND, "Seller not found.")
        # The request stays pending until the plan change is stored
        await _upgrade_seller(db, seller, payment["plan"])
        updates["notes"] = body.get("notes")
    else:
        updates["rejectionReason"] = body.get("rejectionReason") or body.get("reason")

    await db.update(Collections.PAYMENT_REQUESTS, payment_id, updates)
    reviewed = await db.find_by_id(Collections.PAYMENT_REQUESTS, payment_id)
    logger.info("payment_request_reviewed", payment_id=payment_id, status=updates["status"], by=admin.email)
    return {"success": True, "paymentRequest": reviewed}


@router.post("")
async def payment_action(
    request: Request,
    action: Optional[str] = None,
    body: Optional[Dict[str, Any]] = Body(default=None),
):
    body = body or {}
    action = action or body.get("action")
    if not action:
        raise ApiError(status.HTTP_400_BAD_REQUEST, MISSING_ACTION)

    db = get_db_client()
    if action == "create":
        user = await require_user(request)
        return await _create_request(db, user, body)
    if action in ("approve", "reject"):
        admin = await require_admin(request)
        return await _review_request(db, admin, body, approve=action == "approve")

    raise ApiError(status.HTTP_400_BAD_REQUEST, MISSING_ACTION)


@router.get("")
async def get_payments(
    request: Request,
    action: Optional[str] = None,
    sellerEmail: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
):
    db = get_db_client()

    if action == "status":
        user = await require_user(request)
        if not sellerEmail:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "sellerEmail is required.")
        if not (user.is_admin or user.owns(sellerEmail)):
            raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to payment status.")
        requests = await db.find_by_field(Collections.PAYMENT_REQUESTS, "sellerEmail", sellerEmail.lower().strip())
        if not requests:
            return {"success": True, "status": "none", "paymentRequest": None}
        latest = newest_first(requests)[0]
        return {"success": True, "status": latest.get("status"), "paymentRequest": latest}

    if action:
        raise ApiError(status.HTTP_400_BAD_REQUEST, MISSING_ACTION)

    await require_admin(request)
    requests = await db.find_all(Collections.PAYMENT_REQUESTS)
    if status_filter:
        requests = [r for r in requests if r.get("status") == status_filter]
    return {"success": True, "paymentRequests": newest_first(requests)}
