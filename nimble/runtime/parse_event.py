# =============================================================================
# Event Parser - Detect and Parse Lambda Events
# =============================================================================
# Detects event source and normalizes into Envelope format.
# Supports: API Gateway WebSocket, API Gateway HTTP / Function URL,
# Direct Invoke, CLI
# =============================================================================

import base64
import binascii
import json
import logging
import uuid
from typing import Any, Dict, List, Tuple
from nimble.runtime.envelope import Envelope, EnvelopeKind

logger = logging.getLogger(__name__)


class EventSource:
    """Event source identifiers."""
    WEBSOCKET = "websocket"
    API_GATEWAY = "api_gateway"
    DIRECT = "direct"
    CLI = "cli"
    UNKNOWN = "unknown"


def detect_event_source(event: Dict[str, Any]) -> str:
    """
    Detect the source of a Lambda event.

    Returns one of: websocket, api_gateway, direct, cli, unknown
    """
    if not event:
        return EventSource.UNKNOWN

    request_context = event.get("requestContext") or {}

    # WebSocket API: every route carries a connection id and route key
    if "connectionId" in request_context and "routeKey" in request_context:
        return EventSource.WEBSOCKET

    # HTTP API (v2) / Function URL, or REST API (v1)
    if "http" in request_context or "httpMethod" in request_context:
        return EventSource.API_GATEWAY
    if "httpMethod" in event:
        return EventSource.API_GATEWAY

    # CLI (explicit marker)
    if event.get("_source") == "cli":
        return EventSource.CLI

    # Direct invoke with action
    if "action" in event:
        return EventSource.DIRECT

    return EventSource.UNKNOWN


def _decode_body(event: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """
    Decode a proxy-integration body into a dict.

    Returns (payload, valid). Empty bodies are valid and yield {}.
    """
    body = event.get("body")
    if body is None or body == "":
        return {}, True
    if isinstance(body, dict):
        return body, True

    if event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return {}, False

    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return {}, False

    if not isinstance(parsed, dict):
        return {}, False
    return parsed, True


def _parse_websocket_event(event: Dict[str, Any]) -> Envelope:
    """Parse API Gateway WebSocket route event."""
    request_context = event.get("requestContext", {})
    payload, valid = _decode_body(event)

    metadata = {
        "domainName": request_context.get("domainName", ""),
        "stage": request_context.get("stage", ""),
        "eventType": request_context.get("eventType", ""),
    }
    if not valid:
        metadata["invalidJson"] = True
        metadata["rawBody"] = event.get("body")

    return Envelope.from_websocket_event(
        route_key=request_context.get("routeKey", ""),
        connection_id=request_context.get("connectionId", ""),
        payload=payload,
        query=event.get("queryStringParameters") or {},
        request_id=request_context.get("requestId") or str(uuid.uuid4()),
        raw_event=event,
        metadata=metadata,
    )


def _parse_api_gateway_event(event: Dict[str, Any]) -> Envelope:
    """Parse API Gateway HTTP API, REST API or Function URL event."""
    request_context = event.get("requestContext", {})
    http = request_context.get("http", {})

    request_id = (
        request_context.get("requestId") or
        (event.get("headers") or {}).get("x-amzn-trace-id") or
        str(uuid.uuid4())
    )

    payload, valid = _decode_body(event)

    # Header names are case-insensitive; normalize once here
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}

    metadata = {
        "headers": headers,
        "queryStringParameters": event.get("queryStringParameters") or {},
        "pathParameters": event.get("pathParameters") or {},
        "httpMethod": http.get("method") or request_context.get("httpMethod") or event.get("httpMethod"),
        "path": http.get("path") or event.get("rawPath") or event.get("path"),
        "bodySize": len(event.get("body") or ""),
    }
    if not valid:
        metadata["invalidJson"] = True

    return Envelope(
        kind=EnvelopeKind.ACTION_REQUEST,
        request_id=request_id,
        source=EventSource.API_GATEWAY,
        payload=payload,
        raw_event=event,
        metadata=metadata,
    )


def _parse_direct_event(event: Dict[str, Any], source: str = EventSource.DIRECT) -> Envelope:
    """Parse direct Lambda invoke event."""
    request_id = event.get("requestId", str(uuid.uuid4()))

    return Envelope.from_action_request(
        payload=event,
        source=source,
        request_id=request_id,
        raw_event=event,
    )


def parse_event(event: Dict[str, Any]) -> Tuple[List[Envelope], str]:
    """
    Parse Lambda event and return list of Envelopes.

    Returns:
        Tuple of (list of Envelopes, detected source)
    """
    source = detect_event_source(event)
    logger.info(f"Detected event source: {source}")

    if source == EventSource.WEBSOCKET:
        return [_parse_websocket_event(event)], source

    elif source == EventSource.API_GATEWAY:
        return [_parse_api_gateway_event(event)], source

    elif source in (EventSource.DIRECT, EventSource.CLI):
        return [_parse_direct_event(event, source)], source

    else:
        # Unknown source - try to parse as direct invoke
        logger.warning("Unknown event source, treating as direct invoke")
        return [_parse_direct_event(event or {})], EventSource.UNKNOWN
