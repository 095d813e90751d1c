# =============================================================================
# WebSocket Message Routes
# =============================================================================
# sendMessage / fetchMessages / ping, plus $default which routes on the
# frame's "type" field. Chat storage lives in the backend; these handlers
# proxy to it and push the result back to the calling connection.
# =============================================================================

import logging
from typing import Any, Callable, Dict
import requests
from botocore.exceptions import BotoCoreError, ClientError
from nimble.runtime.dispatch import register
from nimble.runtime.envelope import Envelope
from nimble.runtime.deps import Deps
from handlers.backend import proxy_to_backend
from handlers.push import send_to_websocket_client
from handlers.base import (
    now_ms, now_s, success_response, error_response, invalid_json_response,
)

logger = logging.getLogger(__name__)


@register("sendMessage", category="websocket")
def handle_send_message(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Store a chat message through the backend and confirm to the sender."""
    if envelope.has_invalid_body:
        return invalid_json_response()

    connection_id = envelope.connection_id
    body = envelope.payload

    logger.info(f"Send message from {connection_id}")

    try:
        response = proxy_to_backend({
            "type": "store_message",
            "message": body.get("message"),
            "sender_name": body.get("senderName") or "User",
            "sender_number": body.get("senderNumber") or "",
            "time_stamp": body.get("time_stamp") or now_s(),
        }, envelope.user_id, deps)

        logger.info(f"Message proxied to backend for {connection_id}")

        send_to_websocket_client(connection_id, {
            "type": "message_sent",
            "success": True,
            "message": "Message sent successfully",
            "backend_response": response,
        }, deps)

        return success_response(message="Message sent successfully")

    except (requests.RequestException, ClientError, BotoCoreError) as e:
        logger.error(f"Error sending message: {e}")

        try:
            send_to_websocket_client(connection_id, {
                "type": "error",
                "message": "Failed to send message",
                "error": str(e),
            }, deps)
        except (ClientError, BotoCoreError) as send_error:
            logger.error(f"Error sending error message to client: {send_error}")

        return error_response("Failed to send message", 500)


@register("fetchMessages", category="websocket")
def handle_fetch_messages(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Fetch the user's stored messages and push them to the caller."""
    if envelope.has_invalid_body:
        return invalid_json_response()

    connection_id = envelope.connection_id
    user_id = envelope.user_id

    logger.info(f"Fetching messages for user: {user_id}")

    try:
        response = proxy_to_backend({"type": "fetch_messages"}, user_id, deps)
        messages = response.get("messages") or []

        send_to_websocket_client(connection_id, {
            "type": "database_messages",
            "messages": messages,
            "userId": user_id,
        }, deps)
        logger.info(f"{len(messages)} messages sent to WebSocket client: {connection_id}")

        return success_response(message="Messages sent to client")

    except (requests.RequestException, ClientError, BotoCoreError) as e:
        logger.error(f"Error fetching messages: {e}")
        return error_response("Failed to fetch messages", 500)


@register("ping", category="websocket")
def handle_ping(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Keepalive; answers with a pong body."""
    if envelope.has_invalid_body:
        return invalid_json_response()

    logger.info(f"Ping from connection: {envelope.connection_id}")

    return success_response(
        type="pong",
        timestamp=now_ms(),
        connectionId=envelope.connection_id,
    )


# Frame "type" -> route handler for frames arriving on $default
MESSAGE_TYPE_HANDLERS: Dict[str, Callable[[Envelope, Deps], Dict[str, Any]]] = {
    "fetch_messages": handle_fetch_messages,
    "store_message": handle_send_message,
    "ping": handle_ping,
}


@register("$default", category="websocket")
def handle_default(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Route frames that matched no named route by their type field."""
    if envelope.has_invalid_body:
        logger.warning(f"Non-JSON frame on {envelope.route_key or '$default'} from {envelope.connection_id}")
        return invalid_json_response()

    message_type = envelope.payload.get("type")
    logger.info(f"Processing message type: {message_type} in default handler")

    handler = MESSAGE_TYPE_HANDLERS.get(message_type)
    if not handler:
        return error_response(
            "Invalid message type", 400,
            message=f"Unknown message type: {message_type}",
        )
    return handler(envelope, deps)
