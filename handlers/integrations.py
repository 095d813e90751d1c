# =============================================================================
# Integration Records
# =============================================================================
# WhatsApp Business integrations created by the embedded-signup code
# exchange. Each exchange writes three views of the same integration:
#   WHATSAPP_INTEGRATION#{waba_id}          full WhatsApp record
#   INTEGRATION#{waba_id}                   provider-agnostic listing
#   USER#{user_id}#INTEGRATION#{waba_id}    per-user listing
# =============================================================================

import logging
from typing import Any, Dict, Optional
from botocore.exceptions import BotoCoreError, ClientError
from nimble.runtime.deps import Deps

logger = logging.getLogger(__name__)

PK_NAME = "pk"


def whatsapp_key(waba_id: str) -> str:
    return f"WHATSAPP_INTEGRATION#{waba_id}"


def integration_key(waba_id: str) -> str:
    return f"INTEGRATION#{waba_id}"


def user_integration_key(user_id: str, waba_id: str) -> str:
    return f"USER#{user_id}#INTEGRATION#{waba_id}"


def build_integration_items(
    waba_id: str,
    phone_number_id: str,
    access_token: str,
    user_id: str,
    timestamp: str,
    app_id: str,
    environment: str,
) -> Dict[str, Dict[str, Any]]:
    """The three items written for one integration, keyed by view name."""
    common = {
        "waba_id": waba_id,
        "phone_number_id": phone_number_id,
        "access_token": access_token,
        "created_at": timestamp,
        "updated_at": timestamp,
        "status": "active",
    }
    return {
        "whatsapp_integrations": {
            PK_NAME: whatsapp_key(waba_id),
            **common,
            "facebook_app_id": app_id,
            "integration_type": "whatsapp_business_api",
            "environment": environment,
        },
        "integrations": {
            PK_NAME: integration_key(waba_id),
            "type": "whatsapp",
            **common,
            "provider": "facebook",
            "environment": environment,
        },
        "user_integrations": {
            PK_NAME: user_integration_key(user_id, waba_id),
            "type": "whatsapp",
            "user_id": user_id,
            **common,
        },
    }


def save_whatsapp_integration(
    waba_id: str,
    phone_number_id: str,
    access_token: str,
    user_id: str,
    timestamp: str,
    deps: Deps,
) -> bool:
    """
    Persist an integration in all three views.

    Returns False (after logging) when the table is not configured or a write
    fails; the exchange itself has already succeeded by then.
    """
    if not deps.config["INTEGRATIONS_TABLE"]:
        logger.warning("INTEGRATIONS_TABLE not set, skipping integration save")
        return False

    credentials = deps.app_credentials() or {}
    items = build_integration_items(
        waba_id=waba_id,
        phone_number_id=phone_number_id,
        access_token=access_token,
        user_id=user_id,
        timestamp=timestamp,
        app_id=credentials.get("app_id", ""),
        environment=deps.config["ENVIRONMENT"],
    )

    try:
        with deps.integrations_table.batch_writer() as batch:
            for item in items.values():
                batch.put_item(Item=item)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to save integration {waba_id}: {e}")
        return False

    logger.info(f"Integration {waba_id} saved for user {user_id}: {', '.join(items)}")
    return True


def get_whatsapp_integration(waba_id: str, deps: Deps) -> Optional[Dict[str, Any]]:
    """Full WhatsApp integration record, or None."""
    try:
        response = deps.integrations_table.get_item(Key={PK_NAME: whatsapp_key(waba_id)})
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to read integration {waba_id}: {e}")
        return None
    return response.get("Item")
