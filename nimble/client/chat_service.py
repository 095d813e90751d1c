# =============================================================================
# Chat Service - Dashboard API Client
# =============================================================================
# HTTP client for the support dashboard's chat endpoints plus the display
# helpers the dashboard uses for timestamps and durations.
# =============================================================================

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Union

import requests

from nimble.client.api_config import build_api_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


class ChatServiceError(Exception):
    """Dashboard API answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


def post_json(endpoint: str, body: Dict[str, Any], session: requests.Session = None,
              timeout: int = DEFAULT_TIMEOUT_SECONDS) -> Dict[str, Any]:
    """
    POST a JSON body to a named endpoint and return the decoded reply.

    Raises:
        ChatServiceError: non-2xx response
        requests.RequestException: transport failure
    """
    url = build_api_url(endpoint)
    logger.info(f"Calling {endpoint} URL: {url}")

    http = session or requests
    response = http.post(url, json=body, timeout=timeout)

    if not response.ok:
        logger.error(f"{endpoint} failed: HTTP {response.status_code} {response.text}")
        raise ChatServiceError(
            f"HTTP {response.status_code}: {response.reason} - {response.text}",
            status_code=response.status_code,
        )
    return response.json()


def fetch_recent_chats(user_id: str, limit: int = 10, session: requests.Session = None) -> Dict[str, Any]:
    """Most recent customer chats for a user."""
    return post_json("chats.recent", {"user_id": user_id, "limit": limit}, session)


def fetch_all_chats(user_id: str, page: int = 1, limit: int = 20,
                    session: requests.Session = None) -> Dict[str, Any]:
    """One page of a user's chats."""
    return post_json("chats.all", {"user_id": user_id, "page": page, "limit": limit}, session)


def fetch_chat_messages(chat_id: str, user_id: str, session: requests.Session = None) -> Dict[str, Any]:
    return post_json("chats.messages", {"chat_id": chat_id, "user_id": user_id}, session)


def send_agent_message(chat_id: str, message: str, user_id: str,
                       session: requests.Session = None) -> Dict[str, Any]:
    """Reply to a customer as a human agent."""
    return post_json("chats.sendMessage", {
        "chat_id": chat_id,
        "message": message,
        "user_id": user_id,
        "sender_type": "agent",
    }, session)


def update_chat_status(chat_id: str, status: str, user_id: str,
                       session: requests.Session = None) -> Dict[str, Any]:
    """Resolve, escalate, etc."""
    return post_json("chats.updateStatus", {"chat_id": chat_id, "status": status, "user_id": user_id}, session)


def assign_chat_to_agent(chat_id: str, agent_id: str, user_id: str,
                         session: requests.Session = None) -> Dict[str, Any]:
    return post_json("chats.assign", {"chat_id": chat_id, "agent_id": agent_id, "user_id": user_id}, session)


# =============================================================================
# FORMATTING HELPERS
# =============================================================================

def _to_datetime(timestamp: Union[datetime, int, float, str]) -> datetime:
    """Accepts datetimes, epoch milliseconds, or ISO-8601 strings."""
    if isinstance(timestamp, datetime):
        dt = timestamp
    elif isinstance(timestamp, (int, float)):
        dt = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    else:
        dt = datetime.fromisoformat(str(timestamp).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'s' if n > 1 else ''} ago"


def format_relative_time(timestamp: Union[datetime, int, float, str], now: datetime = None) -> str:
    """'Just now', 'N minutes ago', 'N hours ago', 'N days ago', else MM/DD/YYYY."""
    date = _to_datetime(timestamp)
    now = now or datetime.now(timezone.utc)
    diff = int((now - date).total_seconds())

    if diff < 60:
        return "Just now"
    if diff < 3600:
        return _plural(diff // 60, "minute")
    if diff < 86400:
        return _plural(diff // 3600, "hour")
    if diff < 2592000:
        return _plural(diff // 86400, "day")
    return date.strftime("%m/%d/%Y")


def format_duration(seconds: int) -> str:
    """45 -> '45s', 180 -> '3 min', 3900 -> '1h 5m'."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60} min"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}h {minutes}m"
