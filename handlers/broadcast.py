# =============================================================================
# Broadcast to a User's Connections
# =============================================================================
# Invoked directly by the chat backend when a new message arrives:
#   {"action": "broadcast", "user_id": "...", "message_data": {...}}
# Every open socket of the user receives {"type": "new_message", ...}.
# =============================================================================

import logging
from typing import Any, Dict
from botocore.exceptions import BotoCoreError, ClientError
from nimble.runtime.dispatch import register
from nimble.runtime.envelope import Envelope
from nimble.runtime.deps import Deps
from handlers.connections import get_active_connections_for_user, remove_connection
from handlers.push import send_to_websocket_client, is_gone
from handlers.base import success_response

logger = logging.getLogger(__name__)


def broadcast_new_message_to_user(user_id: str, message_data: Dict[str, Any], deps: Deps) -> Dict[str, int]:
    """
    Push a new_message frame to every connection of user_id.

    A connection that can't be reached is treated as stale and its record
    deleted. Never raises; returns counts for logging and the caller.
    """
    connections = get_active_connections_for_user(user_id, deps)
    logger.info(f"Broadcasting to {len(connections)} connections for user {user_id}")

    frame = {"type": "new_message", **(message_data or {})}
    sent = removed = 0

    for connection in connections:
        connection_id = connection.get("connectionId")
        if not connection_id:
            continue
        try:
            send_to_websocket_client(connection_id, frame, deps)
            sent += 1
        except (ClientError, BotoCoreError) as e:
            reason = "gone" if is_gone(e) else "error"
            logger.warning(f"Removing stale connection {connection_id} ({reason})")
            if remove_connection(connection_id, deps):
                removed += 1

    logger.info(f"Broadcast completed for user {user_id}: sent={sent} removed={removed}")
    return {"connections": len(connections), "sent": sent, "removed": removed}


@register("broadcast", category="direct", requires=["user_id"])
def handle_broadcast(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Fan a new message out to all of a user's open sockets."""
    stats = broadcast_new_message_to_user(
        envelope.get("user_id"),
        envelope.get("message_data") or {},
        deps,
    )
    return success_response(message="Broadcast completed", **stats)
