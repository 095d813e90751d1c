# =============================================================================
# WhatsApp Embedded Signup - Code Exchange
# =============================================================================
# POST /api/whatsapp/exchange-code
#   {"code": "...", "waba_id": "...", "phone_number_id": "...", "user_id"?: "..."}
#
# Exchanges the short-lived OAuth code from Meta's embedded signup for a
# WhatsApp Business access token and stores the integration. Codes expire
# roughly 30 seconds after issue, so the Graph call has a short timeout.
# =============================================================================

import logging
from typing import Any, Dict
import requests
from nimble.runtime.dispatch import register
from nimble.runtime.envelope import Envelope
from nimble.runtime.deps import Deps
from handlers.integrations import save_whatsapp_integration
from handlers.base import iso_now, mask_token, missing_fields, success_response, error_response

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["code", "waba_id", "phone_number_id"]


class TokenExchangeError(Exception):
    """Graph API answered without an access token."""


def _graph_error_details(response) -> Any:
    if response is None:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def exchange_code_for_token(code: str, deps: Deps) -> str:
    """
    Trade an authorization code for an access token.

    Raises:
        requests.HTTPError: Graph API rejected the code
        requests.RequestException: transport failure
        TokenExchangeError: response carried no access_token
    """
    credentials = deps.app_credentials()
    url = f"{deps.config['META_GRAPH_URL']}/{deps.config['META_API_VERSION']}/oauth/access_token"

    response = deps.http.post(url, json={
        "client_id": credentials["app_id"],
        "client_secret": credentials["app_secret"],
        "code": code,
        "grant_type": "authorization_code",
    }, timeout=deps.config["GRAPH_TIMEOUT_SECONDS"])
    response.raise_for_status()

    try:
        reply = response.json()
    except ValueError:
        reply = None
    access_token = reply.get("access_token") if isinstance(reply, dict) else None
    if not access_token:
        raise TokenExchangeError("Graph API response did not include an access_token")
    return access_token


@register("POST /api/whatsapp/exchange-code", category="http")
def handle_exchange_code(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Exchange an embedded-signup code for a WhatsApp access token."""
    body = envelope.payload
    code = body.get("code")
    waba_id = body.get("waba_id")
    phone_number_id = body.get("phone_number_id")

    logger.info(
        f"WhatsApp code exchange request: code={mask_token(code)} waba_id={waba_id} "
        f"phone_number_id={phone_number_id}"
    )

    if missing_fields(body, REQUIRED_FIELDS):
        logger.warning(f"Missing required fields: {missing_fields(body, REQUIRED_FIELDS)}")
        return error_response(
            f"Missing required fields: {', '.join(REQUIRED_FIELDS)}", 400,
            received={f: bool(body.get(f)) for f in REQUIRED_FIELDS},
        )

    if not deps.app_credentials():
        logger.error("Missing Facebook App credentials")
        return error_response("Server configuration error: Missing Facebook App credentials", 500)

    try:
        access_token = exchange_code_for_token(code, deps)
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        details = _graph_error_details(e.response)
        logger.error(f"Graph API rejected code exchange: status={status} details={details}")
        if status == 400:
            return error_response("Invalid authorization code or expired code", 400, details=details)
        return error_response("Failed to complete WhatsApp integration setup", 500, details=str(e))
    except (requests.RequestException, TokenExchangeError) as e:
        logger.error(f"Error in WhatsApp code exchange: {e}")
        return error_response("Failed to complete WhatsApp integration setup", 500, details=str(e))

    logger.info(f"Exchanged code for access token {mask_token(access_token)}")

    created_at = iso_now()
    user_id = body.get("user_id") or deps.config["DEFAULT_USER_ID"]
    save_whatsapp_integration(waba_id, phone_number_id, access_token, user_id, created_at, deps)

    return success_response(
        success=True,
        message="WhatsApp integration setup completed successfully",
        integration={
            "waba_id": waba_id,
            "phone_number_id": phone_number_id,
            "status": "active",
            "created_at": created_at,
        },
    )
