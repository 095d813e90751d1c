import logging
import os

from nimble.app import websocket_handler, api_handler

# ---------- Logger ----------
logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())


# =============================================================================
# LAMBDA ENTRY POINTS
# =============================================================================
# lambda_handler        WebSocket API routes + direct "broadcast" invokes
# api_lambda_handler    HTTP proxy (Function URL): health, WhatsApp code exchange
# =============================================================================

def lambda_handler(event, context):
    return websocket_handler(event, context)


def api_lambda_handler(event, context):
    return api_handler(event, context)
