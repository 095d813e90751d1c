# Client for the HTTP proxy Lambda's WhatsApp signup and health endpoints
import logging
from typing import Any, Dict

import requests

from nimble.client.api_config import build_api_url
from nimble.client.chat_service import ChatServiceError, post_json

logger = logging.getLogger(__name__)

# Meta codes expire ~30s after the signup popup closes
EXCHANGE_TIMEOUT_SECONDS = 15


def exchange_code(code: str, waba_id: str, phone_number_id: str, user_id: str = None,
                  session: requests.Session = None) -> Dict[str, Any]:
    """Hand the embedded-signup result to the backend for token exchange."""
    body = {"code": code, "waba_id": waba_id, "phone_number_id": phone_number_id}
    if user_id:
        body["user_id"] = user_id
    return post_json("whatsapp", body, session, timeout=EXCHANGE_TIMEOUT_SECONDS)


def check_health(session: requests.Session = None) -> Dict[str, Any]:
    url = build_api_url("health")
    response = (session or requests).get(url, timeout=10)
    if not response.ok:
        raise ChatServiceError(
            f"HTTP {response.status_code}: {response.reason} - {response.text}",
            status_code=response.status_code,
        )
    return response.json()
