"""
WebSocket infrastructure for live conversation updates
Buyers and sellers watching a conversation receive new messages as they are stored
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
import structlog

from src.listings.dates import now_iso, utcnow

logger = structlog.get_logger()


@dataclass
class ConversationChannel:
    """Subscribers and recent messages for one conversation"""
    conversation_id: str
    messages: list = field(default_factory=list)
    subscribers: Set[WebSocket] = field(default_factory=set)
    created_at: datetime = field(default_factory=utcnow)


class WebSocketManager:
    """
    Manages WebSocket subscriptions per conversation

    Features:
    - Multiple subscribers per conversation
    - Recent-message replay for late joiners
    - Cleanup of idle channels
    """

    def __init__(self, max_buffer_size: int = 50, channel_ttl_minutes: int = 60):
        """
        Args:
            max_buffer_size: Messages kept per conversation for replay
            channel_ttl_minutes: How long an idle channel survives
        """
        self.max_buffer_size = max_buffer_size
        self.channel_ttl_minutes = channel_ttl_minutes

        # Conversation ID -> ConversationChannel
        self.channels: Dict[str, ConversationChannel] = {}

        self.active_connections: Set[WebSocket] = set()

    def _channel(self, conversation_id: str) -> ConversationChannel:
        if conversation_id not in self.channels:
            self.channels[conversation_id] = ConversationChannel(conversation_id=conversation_id)
        return self.channels[conversation_id]

    async def connect(self, websocket: WebSocket, conversation_id: str) -> None:
        """Accept a connection and replay buffered messages"""
        await websocket.accept()
        self.active_connections.add(websocket)

        channel = self._channel(conversation_id)
        channel.subscribers.add(websocket)

        logger.info(
            "websocket_connected",
            conversation_id=conversation_id,
            total_subscribers=len(channel.subscribers)
        )

        for message in channel.messages:
            try:
                await websocket.send_json({"type": "message", "data": message})
            except Exception:
                break

    def disconnect(self, websocket: WebSocket, conversation_id: str) -> None:
        self.active_connections.discard(websocket)

        if conversation_id in self.channels:
            self.channels[conversation_id].subscribers.discard(websocket)
            logger.info(
                "websocket_disconnected",
                conversation_id=conversation_id,
                remaining_subscribers=len(self.channels[conversation_id].subscribers)
            )

    async def _send(self, channel: ConversationChannel, payload: Dict[str, Any]) -> None:
        disconnected = set()
        for websocket in channel.subscribers:
            try:
                await websocket.send_json(payload)
            except Exception:
                disconnected.add(websocket)

        for ws in disconnected:
            self.disconnect(ws, channel.conversation_id)

    async def broadcast_message(self, conversation_id: str, message: Dict[str, Any]) -> int:
        """
        Buffer a new message and push it to subscribers

        Returns:
            Number of subscribers the message was sent to
        """
        channel = self._channel(conversation_id)
        channel.messages.append(message)
        if len(channel.messages) > self.max_buffer_size:
            channel.messages = channel.messages[-self.max_buffer_size:]

        if channel.subscribers:
            await self._send(channel, {"type": "message", "data": message})
        return len(channel.subscribers)

    async def broadcast_read(self, conversation_id: str, reader: str) -> None:
        if conversation_id not in self.channels:
            return
        await self._send(self.channels[conversation_id], {
            "type": "read",
            "data": {"conversationId": conversation_id, "reader": reader, "timestamp": now_iso()}
        })

    def get_subscriber_count(self, conversation_id: str) -> int:
        if conversation_id in self.channels:
            return len(self.channels[conversation_id].subscribers)
        return 0

    def get_buffered_messages(self, conversation_id: str) -> list:
        if conversation_id in self.channels:
            return list(self.channels[conversation_id].messages)
        return []

    async def cleanup_stale_channels(self) -> int:
        """
        Drop channels with no subscribers that are past the TTL

        Returns:
            Number of channels removed
        """
        now = utcnow()
        ttl = timedelta(minutes=self.channel_ttl_minutes)

        stale = [
            conversation_id for conversation_id, channel in self.channels.items()
            if not channel.subscribers and (now - channel.created_at) > ttl
        ]
        for conversation_id in stale:
            del self.channels[conversation_id]

        if stale:
            logger.info("stale_conversation_channels_cleaned", count=len(stale))
        return len(stale)

    async def close_all(self) -> int:
        """Close every open socket on shutdown; returns how many were closed"""
        closed = 0
        for websocket in list(self.active_connections):
            try:
                await websocket.close(code=1001)
                closed += 1
            except Exception as e:
                logger.debug("websocket_close_failed", error=str(e))

        self.active_connections.clear()
        self.channels.clear()
        return closed


# Singleton instance
_websocket_manager: Optional[WebSocketManager] = None


def get_websocket_manager() -> WebSocketManager:
    """Get or create WebSocket manager singleton"""
    global _websocket_manager

    if _websocket_manager is None:
        _websocket_manager = WebSocketManager()

    return _websocket_manager
