# =============================================================================
# WebSocket Handler
# =============================================================================
# Entry point for the API Gateway WebSocket API. The same function also
# accepts direct invokes ({"action": "broadcast", ...}) from the chat backend.
# =============================================================================

import json
import logging
from typing import Any, Dict
from nimble.runtime.parse_event import parse_event, EventSource
from nimble.runtime.dispatch import dispatch
from nimble.runtime.deps import create_deps, resolve_ws_endpoint
from handlers.base import response_body

logger = logging.getLogger(__name__)


def ws_response(data: Dict[str, Any], status_code: int = None) -> Dict[str, Any]:
    """Format a route response for API Gateway / direct invoke callers."""
    code = status_code or data.get("statusCode", 200)
    return {
        "statusCode": code,
        "body": json.dumps(response_body(data), ensure_ascii=False, default=str),
    }


def websocket_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    WebSocket API entry point.

    Handles:
    - $connect / $disconnect
    - sendMessage, fetchMessages, ping
    - $default (routed on the frame's type field)
    - direct invoke {"action": "broadcast", "user_id", "message_data"}

    Args:
        event: API Gateway WebSocket event or direct invoke payload
        context: Lambda context

    Returns:
        {"statusCode": int, "body": str}
    """
    try:
        envelopes, source = parse_event(event)
        envelope = envelopes[0]

        if source == EventSource.WEBSOCKET:
            logger.info(f"Processing route: {envelope.route_key} connection={envelope.connection_id}")
            endpoint = resolve_ws_endpoint(
                envelope.metadata.get("domainName", ""),
                envelope.metadata.get("stage", ""),
            )
        else:
            logger.info(f"Processing direct invoke: action={envelope.action}")
            endpoint = resolve_ws_endpoint()

        deps = create_deps(ws_endpoint=endpoint)
        result = dispatch(envelope, deps)

    except Exception as e:
        logger.exception(f"Unhandled error: {e}")
        return ws_response({"error": "Internal server error"}, 500)

    if result.get("error") == "Internal server error":
        # Exception text stays in the logs
        result = {"statusCode": 500, "error": "Internal server error"}

    return ws_response(result)
