# =============================================================================
# API Gateway Handler
# =============================================================================
# Entry point for the HTTP proxy Lambda (Function URL / HTTP API).
# Applies CORS, logs the request, dispatches "METHOD /path" to the route
# registry and formats the response.
# =============================================================================

import json
import logging
from typing import Any, Dict, List, Optional
from nimble.runtime.envelope import Envelope
from nimble.runtime.parse_event import parse_event
from nimble.runtime.dispatch import dispatch, handler_exists
from nimble.runtime.deps import Deps, create_deps
from handlers.base import response_body

logger = logging.getLogger(__name__)


class CorsRejected(Exception):
    """Request origin is not in the allow list."""


def cors_headers(origin: Optional[str]) -> Dict[str, str]:
    """CORS headers for an allowed request (credentials mode echoes the origin)."""
    headers = {
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    }
    if origin:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Vary"] = "Origin"
    return headers


def check_origin(origin: Optional[str], allowed: List[str]) -> None:
    """Requests without an Origin (curl, mobile apps) are always allowed."""
    if origin and origin not in allowed:
        raise CorsRejected("Not allowed by CORS")


def api_response(data: Dict[str, Any], status_code: int = None, origin: str = None) -> Dict[str, Any]:
    """Format response for API Gateway HTTP API."""
    code = status_code or data.get("statusCode", 200)

    return {
        "statusCode": code,
        "headers": {
            "Content-Type": "application/json",
            **cors_headers(origin),
        },
        "body": json.dumps(response_body(data), ensure_ascii=False, default=str),
    }


def _log_request(envelope: Envelope) -> None:
    headers = envelope.headers
    logger.info(
        f"{envelope.http_method} {envelope.path} "
        f"origin={headers.get('origin')} userAgent={headers.get('user-agent')} "
        f"contentType={headers.get('content-type')} bodySize={envelope.metadata.get('bodySize', 0)}"
    )


def handle_request(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Route one parsed HTTP request."""
    origin = envelope.headers.get("origin")
    method = envelope.http_method
    path = envelope.path

    try:
        check_origin(origin, deps.config["ALLOWED_ORIGINS"])
    except CorsRejected as e:
        logger.warning(f"Rejected origin {origin}")
        return api_response({"error": "Internal server error", "message": str(e)}, 500)

    if method == "OPTIONS":
        return {"statusCode": 204, "headers": cors_headers(origin), "body": ""}

    route = f"{method} {path.rstrip('/') or '/'}"
    if not handler_exists(route):
        return api_response({
            "error": "Endpoint not found",
            "path": path,
            "method": method,
        }, 404, origin)

    result = dispatch(envelope, deps, route=route)
    if result.get("error") == "Internal server error":
        result = {"statusCode": 500, "error": "Internal server error", "message": result.get("message")}
    return api_response(result, origin=origin)


def api_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    HTTP proxy Lambda entry point.

    Handles:
    - GET /                              service banner
    - GET /api/health                    health check
    - POST /api/whatsapp/exchange-code   WhatsApp embedded signup

    Args:
        event: Function URL / HTTP API event
        context: Lambda context

    Returns:
        API Gateway response format
    """
    try:
        envelopes, _ = parse_event(event)
        envelope = envelopes[0]
        _log_request(envelope)
        return handle_request(envelope, create_deps())
    except Exception as e:
        logger.exception(f"Unhandled error: {e}")
        return api_response({"error": "Internal server error", "message": str(e)}, 500)
