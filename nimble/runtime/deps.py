# =============================================================================
# Dependency Injection Container
# =============================================================================
# Provides lazy-loaded AWS clients, the HTTP session and configuration to
# handlers. Handlers receive Deps instead of creating their own clients.
# =============================================================================

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError
from functools import cached_property

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_ORIGINS = [
    "https://nimbleai.in",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3001",
]


def _get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _get_env_int(key: str, default: int) -> int:
    try:
        return int(_get_env(key, str(default)))
    except ValueError:
        logger.warning(f"Invalid integer for {key}, using {default}")
        return default


def _get_env_list(key: str, default: List[str]) -> List[str]:
    raw = _get_env(key)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Deps:
    """
    Dependency injection container for handlers.

    All clients are lazy-loaded on first access.

    Usage:
        def handle_connect(envelope: Envelope, deps: Deps) -> Dict:
            deps.connections_table.put_item(Item={...})
            deps.apigw.post_to_connection(ConnectionId=..., Data=...)
    """
    region: str = field(default_factory=lambda: os.environ.get("AWS_REGION", "ap-south-1"))
    ws_endpoint: str = field(default_factory=lambda: os.environ.get("API_GATEWAY_ENDPOINT", ""))
    _app_credentials: Optional[Dict[str, str]] = field(default=None, repr=False)

    # ==========================================================================
    # AWS Clients (lazy-loaded)
    # ==========================================================================

    @cached_property
    def dynamodb(self):
        """DynamoDB resource."""
        return boto3.resource("dynamodb", region_name=self.region)

    @cached_property
    def connections_table(self):
        """DynamoDB table tracking open WebSocket connections."""
        return self.dynamodb.Table(self.config["CONNECTIONS_TABLE"])

    @cached_property
    def integrations_table(self):
        """DynamoDB table holding WhatsApp integration records."""
        return self.dynamodb.Table(self.config["INTEGRATIONS_TABLE"])

    @cached_property
    def apigw(self):
        """API Gateway Management API client for pushing frames to connections."""
        if not self.ws_endpoint:
            logger.warning("No WebSocket callback endpoint configured")
        return boto3.client(
            "apigatewaymanagementapi",
            endpoint_url=self.ws_endpoint or None,
            region_name=self.region,
        )

    @cached_property
    def secrets(self):
        """Secrets Manager client (Meta app credentials live in SECRETS_REGION)."""
        return boto3.client("secretsmanager", region_name=_get_env("SECRETS_REGION", "us-east-1"))

    @cached_property
    def http(self) -> requests.Session:
        """Shared HTTP session for the backend and Graph API."""
        session = requests.Session()
        session.headers.update({"Content-Type": "application/json"})
        return session

    # ==========================================================================
    # Configuration
    # ==========================================================================

    @cached_property
    def config(self) -> Dict[str, Any]:
        """Environment configuration."""
        return {
            "CONNECTIONS_TABLE": _get_env("CONNECTIONS_TABLE", "nimbleai-connections-prod"),
            "INTEGRATIONS_TABLE": _get_env("INTEGRATIONS_TABLE", "nimbleai-integrations"),
            "EC2_BACKEND_URL": _get_env("EC2_BACKEND_URL", "http://localhost:8000").rstrip("/"),
            "BACKEND_TIMEOUT_SECONDS": _get_env_int("BACKEND_TIMEOUT_SECONDS", 10),
            "CONNECTION_TTL_SECONDS": _get_env_int("CONNECTION_TTL_SECONDS", 24 * 60 * 60),
            "META_GRAPH_URL": _get_env("META_GRAPH_URL", "https://graph.facebook.com").rstrip("/"),
            "META_API_VERSION": _get_env("META_API_VERSION", "v23.0"),
            "GRAPH_TIMEOUT_SECONDS": _get_env_int("GRAPH_TIMEOUT_SECONDS", 10),
            "META_APP_SECRET_NAME": _get_env("META_APP_SECRET_NAME"),
            "ENVIRONMENT": _get_env("ENVIRONMENT", "production"),
            "ALLOWED_ORIGINS": _get_env_list("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS),
            "SERVICE_VERSION": _get_env("SERVICE_VERSION", "1.0.0"),
            "DEFAULT_USER_ID": _get_env("DEFAULT_USER_ID", "default_user"),
        }

    def app_credentials(self) -> Optional[Dict[str, str]]:
        """
        Meta app id/secret for the OAuth code exchange.

        Environment variables win; otherwise the JSON secret named by
        META_APP_SECRET_NAME is read (keys FACEBOOK_APP_ID / FACEBOOK_APP_SECRET).
        Returns None when no credentials are available.
        """
        if self._app_credentials is not None:
            return self._app_credentials

        app_id = _get_env("FACEBOOK_APP_ID")
        app_secret = _get_env("FACEBOOK_APP_SECRET")
        if app_id and app_secret:
            self._app_credentials = {"app_id": app_id, "app_secret": app_secret}
            return self._app_credentials

        secret_name = self.config["META_APP_SECRET_NAME"]
        if not secret_name:
            logger.warning("FACEBOOK_APP_ID/FACEBOOK_APP_SECRET not set and META_APP_SECRET_NAME empty")
            return None

        try:
            logger.info("Fetching Meta app credentials from Secrets Manager")
            response = self.secrets.get_secret_value(SecretId=secret_name)
            secret = json.loads(response.get("SecretString") or "{}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to read secret {secret_name}: {e}")
            return None
        except json.JSONDecodeError:
            logger.error(f"Secret {secret_name} is not valid JSON")
            return None

        app_id = secret.get("FACEBOOK_APP_ID", "")
        app_secret = secret.get("FACEBOOK_APP_SECRET", "")
        if not app_id or not app_secret:
            logger.error(f"Secret {secret_name} is missing FACEBOOK_APP_ID or FACEBOOK_APP_SECRET")
            return None

        self._app_credentials = {"app_id": app_id, "app_secret": app_secret}
        return self._app_credentials


def resolve_ws_endpoint(domain_name: str = "", stage: str = "") -> str:
    """Callback URL for post_to_connection: env override, else derived from the event."""
    endpoint = _get_env("API_GATEWAY_ENDPOINT")
    if endpoint:
        return endpoint
    if domain_name and stage:
        return f"https://{domain_name}/{stage}"
    return ""


def create_deps(region: str = None, ws_endpoint: str = None) -> Deps:
    """Create a new Deps instance."""
    return Deps(
        region=region or os.environ.get("AWS_REGION", "ap-south-1"),
        ws_endpoint=ws_endpoint if ws_endpoint is not None else _get_env("API_GATEWAY_ENDPOINT"),
    )


_global_deps: Optional[Deps] = None


def get_deps() -> Deps:
    """Get or create global Deps instance."""
    global _global_deps
    if _global_deps is None:
        _global_deps = create_deps()
    return _global_deps
