# Base utilities for all handlers
# Shared time, JSON, validation and response helpers
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================
def iso_now() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def now_s() -> int:
    """Current time as epoch seconds."""
    return int(time.time())


def jdump(x: Any) -> str:
    """JSON dump with defaults for non-serializable types."""
    return json.dumps(x, ensure_ascii=False, default=str)


def mask_token(token: Optional[str], keep: int = 10) -> str:
    """Show only the first characters of a secret for logging."""
    if not token:
        return "undefined"
    return f"{token[:keep]}..."


# =============================================================================
# VALIDATION HELPERS
# =============================================================================
def missing_fields(payload: Dict[str, Any], fields: List[str]) -> List[str]:
    """Names of required fields that are absent or empty."""
    return [f for f in fields if not payload.get(f)]


# =============================================================================
# RESPONSE HELPERS
# =============================================================================
def success_response(data: Dict[str, Any] = None, **kwargs) -> Dict[str, Any]:
    """Create a standardized success response."""
    response = {"statusCode": 200}
    if data:
        response.update(data)
    response.update(kwargs)
    return response


def error_response(error: str, status_code: int = 400, **kwargs) -> Dict[str, Any]:
    """Create a standardized error response. Extra fields (message, details) go alongside error."""
    response = {"statusCode": status_code, "error": error}
    response.update(kwargs)
    return response


def invalid_json_response() -> Dict[str, Any]:
    """Response for WebSocket frames whose body is not a JSON object."""
    return error_response("Invalid JSON format", 400, message="Message body must be valid JSON")


def response_body(result: Dict[str, Any]) -> Dict[str, Any]:
    """Strip statusCode and underscore bookkeeping keys for the wire body."""
    return {k: v for k, v in result.items() if k != "statusCode" and not k.startswith("_")}
