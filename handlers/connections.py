# =============================================================================
# Connection Tracking
# =============================================================================
# $connect / $disconnect routes and lookups against the connections table.
# One item per open socket, keyed by connectionId, expiring via DynamoDB TTL.
# =============================================================================

import logging
from typing import Any, Dict, List
from botocore.exceptions import BotoCoreError, ClientError
from nimble.runtime.dispatch import register
from nimble.runtime.envelope import Envelope
from nimble.runtime.deps import Deps
from handlers.base import now_ms, now_s, success_response, error_response

logger = logging.getLogger(__name__)


def build_connection_record(connection_id: str, user_id: str, ttl_seconds: int) -> Dict[str, Any]:
    """Connection item as stored in the connections table."""
    return {
        "connectionId": connection_id,
        "userId": user_id,
        "timestamp": now_ms(),
        "ttl": now_s() + ttl_seconds,
    }


@register("$connect", category="websocket")
def handle_connect(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Store a new WebSocket connection for the user in the query string."""
    connection_id = envelope.connection_id
    user_id = envelope.query.get("userId") or "anonymous"

    logger.info(f"New WebSocket connection: {connection_id} for user: {user_id}")

    item = build_connection_record(connection_id, user_id, deps.config["CONNECTION_TTL_SECONDS"])
    try:
        deps.connections_table.put_item(Item=item)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error storing connection {connection_id}: {e}")
        return error_response("Failed to connect", 500)

    logger.info(f"Connection {connection_id} stored for user {user_id}")
    return success_response(message="Connected successfully", userId=user_id)


@register("$disconnect", category="websocket")
def handle_disconnect(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Remove the connection record when the socket closes."""
    connection_id = envelope.connection_id

    logger.info(f"WebSocket disconnection: {connection_id}")

    try:
        deps.connections_table.delete_item(Key={"connectionId": connection_id})
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error removing connection {connection_id}: {e}")
        return error_response("Failed to disconnect", 500)

    logger.info(f"Connection {connection_id} removed")
    return success_response(message="Disconnected successfully")


def get_active_connections_for_user(user_id: str, deps: Deps) -> List[Dict[str, Any]]:
    """All connection items for a user. Returns [] if the table can't be read."""
    kwargs = {
        "FilterExpression": "userId = :userId",
        "ExpressionAttributeValues": {":userId": user_id},
    }
    items: List[Dict[str, Any]] = []
    try:
        while True:
            response = deps.connections_table.scan(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error getting active connections for user {user_id}: {e}")
        return []
    return items


def remove_connection(connection_id: str, deps: Deps) -> bool:
    """Delete a connection item. Returns False if DynamoDB refused."""
    try:
        deps.connections_table.delete_item(Key={"connectionId": connection_id})
        return True
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to remove connection {connection_id}: {e}")
        return False
