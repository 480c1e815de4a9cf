"""
Marketplace module for ReRide
Provides the FastAPI server, domain routers and live conversation updates
"""

from src.marketplace.websocket import WebSocketManager, get_websocket_manager

__all__ = ["WebSocketManager", "get_websocket_manager"]
