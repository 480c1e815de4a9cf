"""
Support chat bot: stores both sides of the exchange per session
"""

import re
import secrets
import string
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Query, Request, status

from src.database import Collections, DatabaseAdapter, get_db_client
from src.errors import ApiError
from src.listings.dates import epoch_ms, now_iso, sort_key
from src.marketplace.dependencies import get_client_ip, logger
from src.marketplace.models import ChatMessage

router = APIRouter(prefix="/api/chat", tags=["Chat"])

BOT_NAME = "Support Bot"
HISTORY_LIMIT = 100

# (pattern, reply); the first match wins
BOT_REPLIES = [
    (re.compile(r"\b(hello|hi|hey)\b"), "Hello {name}! How can I help you today?"),
    (re.compile(r"price|cost"), "Our prices vary based on the vehicle. Could you tell me which vehicle you're interested in?"),
    (re.compile(r"contact|phone|email"), "You can reach us at support@reride.com. Our support team is available 24/7!"),
    (re.compile(r"help|support"), "I'm here to help! You can ask me about vehicles, pricing, registration, or any other questions. What would you like to know?"),
    (re.compile(r"thank"), "You're welcome! Is there anything else I can help you with?"),
]
DEFAULT_REPLY = (
    "Thank you for your message, {name}! Our support team will get back to you shortly. "
    "In the meantime, feel free to ask me any questions about our vehicles or services."
)


def bot_reply(message: str, user_name: str) -> str:
    text = message.lower()
    for pattern, reply in BOT_REPLIES:
        if pattern.search(text):
            return reply.format(name=user_name)
    return DEFAULT_REPLY.format(name=user_name)


def new_session_id(user_id: Optional[str]) -> str:
    if user_id:
        return f"user_{user_id}_{epoch_ms()}"
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"anon_{epoch_ms()}_{suffix}"


async def _touch_session(
    db: DatabaseAdapter,
    session_id: str,
    user_id: Optional[str],
    user_name: str,
    metadata: Dict[str, Any]
) -> None:
    timestamp = now_iso()
    session = await db.find_by_id(Collections.CHAT_SESSIONS, session_id)
    if session is None:
        await db.create(Collections.CHAT_SESSIONS, {
            "sessionId": session_id,
            "userId": user_id,
            "userName": user_name,
            "status": "active",
            "messageCount": 1,
            "lastMessageAt": timestamp,
            "createdAt": timestamp,
            "metadata": metadata,
        }, session_id)
        return

    await db.update(Collections.CHAT_SESSIONS, session_id, {
        "userName": user_name,
        "status": "active",
        "messageCount": int(session.get("messageCount") or 0) + 1,
        "lastMessageAt": timestamp,
        "metadata": metadata,
    })


@router.post("")
async def send_message(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    body = body or {}
    text = (body.get("message") or "").strip()
    if not text:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Message is required")

    user_id = body.get("userId") or None
    user_name = body.get("userName") or "Guest"
    session_id = body.get("sessionId") or new_session_id(user_id)
    metadata = {
        "ipAddress": get_client_ip(request),
        "userAgent": request.headers.get("user-agent"),
    }

    db = get_db_client()
    user_message = ChatMessage(
        sessionId=session_id,
        userId=user_id,
        userName=user_name,
        message=text,
        sender="user",
        metadata=metadata,
    )
    await db.create(Collections.CHAT_MESSAGES, user_message.model_dump(mode="json"))
    await _touch_session(db, session_id, user_id, user_name, metadata)

    reply = bot_reply(text, user_name)
    bot_message = ChatMessage(
        sessionId=session_id,
        userId=user_id,
        userName=BOT_NAME,
        message=reply,
        sender="bot",
    )
    message_id = await db.create(Collections.CHAT_MESSAGES, bot_message.model_dump(mode="json"))

    logger.info("chat_message_processed", session_id=session_id)
    return {"success": True, "response": reply, "sessionId": session_id, "messageId": message_id}


@router.get("/history")
async def chat_history(userId: Optional[str] = None, sessionId: Optional[str] = None):
    if not userId and not sessionId:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "userId or sessionId is required")

    db = get_db_client()
    if userId:
        messages = await db.find_by_field(Collections.CHAT_MESSAGES, "userId", userId)
    else:
        messages = await db.find_by_field(Collections.CHAT_MESSAGES, "sessionId", sessionId)

    messages.sort(key=lambda m: sort_key(m.get("timestamp")))
    messages = messages[:HISTORY_LIMIT]
    return {"success": True, "messages": messages, "count": len(messages)}


@router.get("/sessions")
async def chat_sessions(
    userId: Optional[str] = None,
    status_filter: str = Query(default="active", alias="status"),
    limit: int = 50,
):
    db = get_db_client()
    sessions = await db.find_all(Collections.CHAT_SESSIONS)

    wanted = status_filter
    if userId:
        sessions = [s for s in sessions if s.get("userId") == userId]
    sessions = [s for s in sessions if s.get("status") == wanted]

    sessions.sort(key=lambda s: sort_key(s.get("lastMessageAt")), reverse=True)
    sessions = sessions[:max(limit, 0)]
    return {"success": True, "sessions": sessions, "count": len(sessions)}
