# =============================================================================
# Dashboard Clients
# =============================================================================
# Realtime WebSocket client and HTTP clients used by the support dashboard.
# =============================================================================

from nimble.client.websocket_service import WebSocketService, websocket_service
from nimble.client.chat_service import ChatServiceError
from nimble.client.api_config import build_api_url

__all__ = [
    "WebSocketService",
    "websocket_service",
    "ChatServiceError",
    "build_api_url",
]
