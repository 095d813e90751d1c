# =============================================================================
# Push to WebSocket Clients
# =============================================================================
# Sends JSON frames to connected browsers via the API Gateway Management API.
# =============================================================================

import logging
from typing import Any, Dict
from botocore.exceptions import BotoCoreError, ClientError
from nimble.runtime.deps import Deps
from handlers.base import jdump

logger = logging.getLogger(__name__)


def send_to_websocket_client(connection_id: str, message: Dict[str, Any], deps: Deps) -> Dict[str, Any]:
    """Post one JSON frame to a connection. Raises ClientError or BotoCoreError on failure."""
    try:
        deps.apigw.post_to_connection(
            ConnectionId=connection_id,
            Data=jdump(message).encode("utf-8"),
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error sending message to client {connection_id}: {e}")
        raise

    logger.info(f"Message sent to WebSocket client: {connection_id}")
    return {"success": True}


def is_gone(error: Exception) -> bool:
    """True when the connection no longer exists on the API Gateway side."""
    if not isinstance(error, ClientError):
        return False
    err = error.response.get("Error", {})
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return err.get("Code") == "GoneException" or status == 410
