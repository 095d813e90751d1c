# =============================================================================
# Chat Backend Proxy
# =============================================================================
# Forwards WebSocket requests to the chat backend's /api/websocket-proxy.
# =============================================================================

import logging
from typing import Any, Dict
import requests
from nimble.runtime.deps import Deps

logger = logging.getLogger(__name__)

PROXY_PATH = "/api/websocket-proxy"


def proxy_to_backend(message_data: Dict[str, Any], user_id: str, deps: Deps) -> Dict[str, Any]:
    """
    POST a request to the chat backend on behalf of user_id.

    Returns the backend's JSON reply. A reply that is not a JSON object becomes
    {"success": False, "error": "Invalid response from backend"}.

    Raises:
        requests.RequestException: backend unreachable or timed out
    """
    url = f"{deps.config['EC2_BACKEND_URL']}{PROXY_PATH}"
    body = {**message_data, "user_id": user_id}

    try:
        response = deps.http.post(url, json=body, timeout=deps.config["BACKEND_TIMEOUT_SECONDS"])
    except requests.RequestException as e:
        logger.error(f"Error proxying to backend {url}: {e}")
        raise

    try:
        reply = response.json()
    except ValueError:
        reply = None

    if not isinstance(reply, dict):
        logger.warning(f"Backend returned a non-object response (HTTP {response.status_code})")
        return {"success": False, "error": "Invalid response from backend"}
    return reply
