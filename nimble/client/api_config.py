# =============================================================================
# API Configuration
# =============================================================================
# Base URLs and endpoint paths of the HTTP proxy Lambda per environment.
#
# Usage:
#   from nimble.client.api_config import build_api_url
#   build_api_url("health")          -> https://.../api/health
#   build_api_url("chats.recent")    -> https://.../api/chats/recent
#   build_api_url("/api/custom")     -> https://.../api/custom
# =============================================================================

import os
from typing import Any, Dict

ENDPOINTS = {
    "whatsapp": "/api/whatsapp/exchange-code",
    "health": "/api/health",
    "chats.recent": "/api/chats/recent",
    "chats.all": "/api/chats/all",
    "chats.messages": "/api/chats/messages",
    "chats.sendMessage": "/api/chats/send-message",
    "chats.updateStatus": "/api/chats/update-status",
    "chats.assign": "/api/chats/assign",
}

API_CONFIG: Dict[str, Dict[str, Any]] = {
    # Local development server
    "development": {
        "baseURL": "http://localhost:5001",
        "endpoints": ENDPOINTS,
    },
    # Lambda Function URL
    "production": {
        "baseURL": "https://ozpmzjnghswkf5fzen5rqle7p40wnxrk.lambda-url.ap-south-1.on.aws",
        "endpoints": ENDPOINTS,
    },
}


def get_current_environment() -> str:
    """NIMBLE_ENV selects the environment; unknown names fall back to production."""
    env = os.environ.get("NIMBLE_ENV", "production").lower()
    return env if env in API_CONFIG else "production"


def get_api_config() -> Dict[str, Any]:
    """Active configuration, with NIMBLE_API_BASE_URL overriding the base URL."""
    config = dict(API_CONFIG[get_current_environment()])
    override = os.environ.get("NIMBLE_API_BASE_URL")
    if override:
        config["baseURL"] = override
    config["baseURL"] = config["baseURL"].rstrip("/")
    return config


def build_api_url(endpoint: str) -> str:
    """Full URL for a named endpoint or a raw path."""
    config = get_api_config()
    return f"{config['baseURL']}{config['endpoints'].get(endpoint, endpoint)}"
