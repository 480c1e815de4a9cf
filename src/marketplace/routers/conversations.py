from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, WebSocket, WebSocketDisconnect, status

from src.auth import TokenUser, authenticate_token, get_optional_user, require_user
from src.database import Collections, DatabaseAdapter, get_db_client
from src.errors import ApiError
from src.listings.dates import now_iso, sort_key
from src.marketplace.dependencies import logger
from src.marketplace.responses import timestamped_id
from src.marketplace.websocket import get_websocket_manager

router = APIRouter(prefix="/api/conversations", tags=["Conversations"])
ws_router = APIRouter(tags=["Conversations"])


def is_participant(user: TokenUser, conversation: Dict[str, Any]) -> bool:
    return user.owns(conversation.get("customerId")) or user.owns(conversation.get("sellerId"))


def _can_access(user: Optional[TokenUser], conversation: Dict[str, Any]) -> bool:
    return user is not None and (user.is_admin or is_participant(user, conversation))


def _latest_first(conversations):
    return sorted(conversations, key=lambda c: sort_key(c.get("lastMessageAt")), reverse=True)


async def _get_conversation(db: DatabaseAdapter, conversation_id: Optional[str]) -> Dict[str, Any]:
    if not conversation_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "conversationId is required.")
    conversation = await db.find_by_id(Collections.CONVERSATIONS, conversation_id)
    if conversation is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Conversation not found.")
    return conversation


@router.get("")
async def get_conversations(
    conversationId: Optional[str] = None,
    customerId: Optional[str] = None,
    sellerId: Optional[str] = None,
    user: Optional[TokenUser] = Depends(get_optional_user),
):
    db = get_db_client()

    if conversationId:
        conversation = await db.find_by_id(Collections.CONVERSATIONS, conversationId)
        if conversation is None or user is None:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Conversation not found.")
        if not _can_access(user, conversation):
            raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to conversation.")
        return {"success": True, "data": conversation}

    if customerId or sellerId:
        if user is None:
            return {"success": True, "data": []}
        email = customerId or sellerId
        if not (user.is_admin or user.owns(email)):
            raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to conversations.")
        field = "customerId" if customerId else "sellerId"
        conversations = await db.find_by_field(Collections.CONVERSATIONS, field, email)
        return {"success": True, "data": _latest_first(conversations)}

    if user is None or not user.is_admin:
        return {"success": True, "data": []}

    conversations = await db.find_all(Collections.CONVERSATIONS)
    return {"success": True, "data": _latest_first(conversations)}


@router.post("")
async def upsert_conversation(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    """Create or replace a conversation"""
    body = body or {}
    conversation_id = body.get("id")
    if not conversation_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Conversation id is required.")

    db = get_db_client()
    existing = await db.find_by_id(Collections.CONVERSATIONS, conversation_id)
    if not _can_access(user, existing or body):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to conversation.")

    timestamp = now_iso()
    record = {k: v for k, v in body.items() if k != "id"}
    record.setdefault("messages", [])
    record.setdefault("lastMessageAt", timestamp)

    if existing:
        record["updatedAt"] = timestamp
        await db.update(Collections.CONVERSATIONS, conversation_id, record)
    else:
        record.setdefault("createdAt", timestamp)
        await db.create(Collections.CONVERSATIONS, record, conversation_id)
        logger.info("conversation_created", conversation_id=conversation_id, by=user.email)

    return {"success": True, "data": await db.find_by_id(Collections.CONVERSATIONS, conversation_id)}


@router.put("")
async def add_message(
    body: Optional[Dict[str, Any]] = Body(default=None),
    user: TokenUser = Depends(require_user),
):
    """Append a message and notify live subscribers"""
    body = body or {}
    message = body.get("message")
    if not isinstance(message, dict):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "conversationId and message are required.")

    db = get_db_client()
    conversation = await _get_conversation(db, body.get("conversationId"))
    if not _can_access(user, conversation):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to conversation.")

    timestamp = now_iso()
    message = {
        "id": message.get("id") or timestamped_id("msg"),
        "timestamp": message.get("timestamp") or timestamp,
        "senderId": message.get("senderId") or user.email,
        **{k: v for k, v in message.items() if k not in ("id", "timestamp", "senderId")},
    }
    messages = list(conversation.get("messages") or []) + [message]

    from_seller = user.owns(conversation.get("sellerId"))
    updates = {
        "messages": messages,
        "lastMessageAt": message["timestamp"],
        "isReadBySeller": from_seller,
        "isReadByCustomer": not from_seller,
        "updatedAt": timestamp,
    }
    await db.update(Collections.CONVERSATIONS, conversation["id"], updates)

    delivered = await get_websocket_manager().broadcast_message(conversation["id"], message)
    logger.info("conversation_message_added", conversation_id=conversation["id"], live_subscribers=delivered)
    return {"success": True, "data": await db.find_by_id(Collections.CONVERSATIONS, conversation["id"])}


@router.delete("")
async def delete_conversation(conversationId: Optional[str] = None, user: TokenUser = Depends(require_user)):
    db = get_db_client()
    conversation = await _get_conversation(db, conversationId)
    if not _can_access(user, conversation):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Unauthorized access to conversation.")

    await db.delete(Collections.CONVERSATIONS, conversation["id"])
    logger.info("conversation_deleted", conversation_id=conversation["id"], by=user.email)
    return {"success": True, "message": "Conversation deleted successfully."}


@ws_router.websocket("/ws/conversations/{conversation_id}")
async def conversation_stream(websocket: WebSocket, conversation_id: str, token: Optional[str] = None):
    """Live feed of new messages; the access token is passed as ``?token=``"""
    auth = authenticate_token(token or "")
    if not auth.is_valid:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user = auth.user

    conversation = await get_db_client().find_by_id(Collections.CONVERSATIONS, conversation_id)
    if conversation is None or not _can_access(user, conversation):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = get_websocket_manager()
    await manager.connect(websocket, conversation_id)
    try:
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and data.get("type") == "read":
                await manager.broadcast_read(conversation_id, user.email)
    except WebSocketDisconnect:
        logger.debug("conversation_stream_closed", conversation_id=conversation_id, user=user.email)
    finally:
        manager.disconnect(websocket, conversation_id)
