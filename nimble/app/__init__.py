# =============================================================================
# Application Entry Points
# =============================================================================
# Thin transport adapters that parse events and call the unified dispatcher.
# =============================================================================

from nimble.app.websocket_handler import websocket_handler
from nimble.app.api_handler import api_handler

__all__ = [
    "websocket_handler",
    "api_handler",
]
