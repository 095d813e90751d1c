# =============================================================================
# NimbleAI Backend
# =============================================================================
# WebSocket router, HTTP proxy Lambda and dashboard API clients.
# =============================================================================

__version__ = "1.0.0"
