from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from src.auth import TokenUser, require_admin, require_user
from src.database import Collections, get_db_client
from src.errors import ApiError
from src.listings.dates import now_iso
from src.listings.fallback import FALLBACK_FAQS
from src.marketplace.dependencies import logger
from src.marketplace.listings import newest_first
from src.marketplace.models import FAQ, SupportTicket, TicketStatus
from src.marketplace.responses import created, fallback, timestamped_id

faqs_router = APIRouter(prefix="/api/faqs", tags=["FAQs"])
tickets_router = APIRouter(prefix="/api/support-tickets", tags=["Support"])

TICKET_STATUSES = [s.value for s in TicketStatus]


# ===== FAQS =====

@faqs_router.get("")
async def list_faqs(category: Optional[str] = None):
    try:
        db = get_db_client()
        if category and category != "all":
            faqs = await db.find_by_field(Collections.FAQS, "category", category)
        else:
            faqs = await db.find_all(Collections.FAQS)
    except Exception as e:
        logger.warning("faqs_unavailable", error=str(e))
        return fallback({"success": True, "faqs": FALLBACK_FAQS, "count": len(FALLBACK_FAQS)})

    faqs = newest_first(faqs)
    return {"success": True, "faqs": faqs, "count": len(faqs)}


@faqs_router.post("")
async def create_faq(
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    body = body or {}
    if not body.get("question") or not body.get("answer") or not body.get("category"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "question, answer and category are required.")

    faq = FAQ(
        id=timestamped_id("faq"),
        question=body["question"],
        answer=body["answer"],
        category=body["category"],
    )
    record = faq.model_dump(mode="json")
    db = get_db_client()
    await db.create(Collections.FAQS, record, faq.id)
    logger.info("faq_created", faq_id=faq.id, by=admin.email)
    return created({"success": True, "faq": record})


@faqs_router.put("")
async def update_faq(
    id: Optional[str] = None,
    body: Optional[Dict[str, Any]] = Body(default=None),
    admin: TokenUser = Depends(require_admin),
):
    if not id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "FAQ id is required.")

    db = get_db_client()
    if await db.find_by_id(Collections.FAQS, id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "FAQ not found.")

    updates = {k: v for k, v in (body or {}).items() if k in ("question", "answer", "category")}
    updates["updatedAt"] = now_iso()
    await db.update(Collections.FAQS, id, updates)
    return {"success": True, "faq": await db.find_by_id(Collections.FAQS, id)}


@faqs_router.delete("")
async def delete_faq(id: Optional[str] = None, admin: TokenUser = Depends(require_admin)):
    if not id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "FAQ id is required.")

    db = get_db_client()
    if await db.find_by_id(Collections.FAQS, id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "FAQ not found.")

    await db.delete(Collections.FAQS, id)
    logger.info("faq_deleted", faq_id=id, by=admin.email)
    return {"success": True, "message": "FAQ deleted successfully."}


# ===== SUPPORT TICKETS =====

async def _get_ticket(ticket_id: Optional[str], user: TokenUser) -> Dict[str, Any]:
    if not ticket_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Ticket id is required.")
    ticket = await get_db_client().find_by_id(Collections.SUPPORT_TICKETS, ticket_id)
    if ticket is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Support ticket not found.")
    if not (user.is_admin or user.owns(ticket.get("userEmail"))):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to support ticket.")
    return ticket


@tickets_router.get("")
async def list_tickets(
    userEmail: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    user: TokenUser = Depends(require_user),
):
    if userEmail:
        if not (user.is_admin or user.owns(userEmail)):
            raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to support tickets.")
    elif not user.is_admin:
        raise ApiError(status.HTTP_403_FORBIDDEN, "userEmail is required.")

    if status_filter and status_filter not in TICKET_STATUSES:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            f"Invalid status. Valid statuses: {', '.join(TICKET_STATUSES)}"
        )

    db = get_db_client()
    if userEmail:
        tickets = await db.find_by_field(Collections.SUPPORT_TICKETS, "userEmail", userEmail.lower().strip())
    else:
        tickets = await db.find_all(Collections.SUPPORT_TICKETS)
    if status_filter:
        tickets = [t for t in tickets if t.get("status") == status_filter]

    tickets = newest_first(tickets)
    return {"success": True, "tickets": tickets, "count": len(tickets)}


@tickets_router.post("")
async def create_ticket(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    required = ("userEmail", "userName", "subject", "message")
    if any(not body.get(field) for field in required):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "userEmail, userName, subject and message are required.")
    if not (user.is_admin or user.owns(body["userEmail"])):
        raise ApiError(status.HTTP_403_FORBIDDEN, "You can only open tickets for your own account.")

    ticket = SupportTicket(
        id=timestamped_id("ticket"),
        userEmail=body["userEmail"].lower().strip(),
        userName=body["userName"],
        subject=body["subject"],
        message=body["message"],
    )
    record = ticket.model_dump(mode="json")
    await get_db_client().create(Collections.SUPPORT_TICKETS, record, ticket.id)
    logger.info("support_ticket_created", ticket_id=ticket.id, user=ticket.userEmail)
    return created({"success": True, "ticket": record})


@tickets_router.put("")
async def update_ticket(
    id: Optional[str] = None,
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    ticket = await _get_ticket(id, user)
    updates = {k: v for k, v in (body or {}).items() if k not in ("id", "createdAt")}
    if not user.is_admin and "userEmail" in updates and not user.owns(updates["userEmail"]):
        raise ApiError(status.HTTP_403_FORBIDDEN, "You cannot reassign a support ticket.")
    if "status" in updates and updates["status"] not in TICKET_STATUSES:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            f"Invalid status. Valid statuses: {', '.join(TICKET_STATUSES)}"
        )

    updates["updatedAt"] = now_iso()
    db = get_db_client()
    await db.update(Collections.SUPPORT_TICKETS, ticket["id"], updates)
    return {"success": True, "ticket": await db.find_by_id(Collections.SUPPORT_TICKETS, ticket["id"])}


@tickets_router.delete("")
async def delete_ticket(id: Optional[str] = None, user: TokenUser = Depends(require_user)):
    ticket = await _get_ticket(id, user)
    await get_db_client().delete(Collections.SUPPORT_TICKETS, ticket["id"])
    logger.info("support_ticket_deleted", ticket_id=ticket["id"], by=user.email)
    return {"success": True, "message": "Support ticket deleted successfully."}
