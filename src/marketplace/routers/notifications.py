from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, status

from src.auth import TokenUser, get_optional_user, require_user
from src.database import Collections, get_db_client
from src.errors import ApiError
from src.listings.dates import sort_key
from src.marketplace.dependencies import logger
from src.marketplace.models import Notification
from src.marketplace.responses import created

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _can_access(user: TokenUser, notification: Dict[str, Any]) -> bool:
    return user.is_admin or user.owns(notification.get("recipient_email"))


@router.get("")
async def get_notifications(
    recipientEmail: Optional[str] = None,
    isRead: Optional[bool] = None,
    notificationId: Optional[str] = None,
    user: Optional[TokenUser] = Depends(get_optional_user),
):
    if user is None:
        return {"success": True, "data": []}

    db = get_db_client()
    if notificationId:
        notification = await db.find_by_id(Collections.NOTIFICATIONS, notificationId)
        if notification is None or not _can_access(user, notification):
            raise ApiError(status.HTTP_404_NOT_FOUND, "Notification not found.")
        return {"success": True, "data": notification}

    if not user.is_admin:
        if recipientEmail and not user.owns(recipientEmail):
            raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to notifications.")
        recipientEmail = user.email

    if recipientEmail:
        notifications = await db.find_by_field(
            Collections.NOTIFICATIONS, "recipient_email", recipientEmail.lower().strip()
        )
    else:
        notifications = await db.find_all(Collections.NOTIFICATIONS)

    if isRead is not None:
        notifications = [n for n in notifications if bool(n.get("read")) == isRead]

    notifications.sort(key=lambda n: sort_key(n.get("created_at")), reverse=True)
    return {"success": True, "data": notifications}


@router.post("")
async def create_notification(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    recipient = (body.get("recipientEmail") or "").lower().strip()
    if not body.get("id") or not recipient:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "id and recipientEmail are required.")
    if not (user.is_admin or user.owns(recipient)):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized to create this notification.")

    message = str(body.get("message") or "")
    notification = Notification(
        id=str(body["id"]),
        recipient_email=recipient,
        type=body.get("targetType") or "general",
        title=body.get("title") or message[:50] or "Notification",
        message=message,
        read=bool(body.get("isRead", False)),
        metadata=body.get("metadata") or {},
    )
    record = notification.model_dump(mode="json")
    if body.get("timestamp"):
        record["created_at"] = body["timestamp"]

    db = get_db_client()
    await db.create(Collections.NOTIFICATIONS, record, notification.id)
    logger.info("notification_created", notification_id=notification.id, recipient=recipient)
    return created({"success": True, "data": record})


@router.put("")
async def update_notification(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    body = body or {}
    notification_id = body.get("notificationId")
    updates = body.get("updates")
    if not notification_id or not isinstance(updates, dict):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "notificationId and updates are required.")

    db = get_db_client()
    notification = await db.find_by_id(Collections.NOTIFICATIONS, notification_id)
    if notification is None or not _can_access(user, notification):
        raise ApiError(status.HTTP_404_NOT_FOUND, "Notification not found.")

    changes = {}
    if "isRead" in updates:
        changes["read"] = bool(updates["isRead"])
    for field in ("message", "title"):
        if field in updates:
            changes[field] = updates[field]
    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update.")

    await db.update(Collections.NOTIFICATIONS, notification_id, changes)
    return {"success": True, "data": await db.find_by_id(Collections.NOTIFICATIONS, notification_id)}


@router.delete("")
async def delete_notification(notificationId: Optional[str] = None, user: TokenUser = Depends(require_user)):
    if not notificationId:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "notificationId is required.")

    db = get_db_client()
    notification = await db.find_by_id(Collections.NOTIFICATIONS, notificationId)
    if notification is None or not _can_access(user, notification):
        raise ApiError(status.HTTP_404_NOT_FOUND, "Notification not found.")

    await db.delete(Collections.NOTIFICATIONS, notificationId)
    return {"success": True, "message": "Notification deleted successfully."}
