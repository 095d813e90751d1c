# =============================================================================
# Envelope
# =============================================================================
# All inputs (WebSocket routes, HTTP API, direct invoke, CLI) are normalized
# into a common Envelope structure for unified processing.
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict
import uuid
from datetime import datetime, timezone


class EnvelopeKind(str, Enum):
    """What produced the envelope."""
    ACTION_REQUEST = "action_request"      # HTTP API / direct invoke / CLI
    WEBSOCKET_EVENT = "websocket_event"    # API Gateway WebSocket route
    UNKNOWN = "unknown"


@dataclass
class Envelope:
    """
    One parsed Lambda event, whatever invoked the function.

    Attributes:
        kind: Type of event (action_request, websocket_event, ...)
        request_id: API Gateway request id, or a fresh uuid4
        source: Origin of the event (websocket, api_gateway, direct, cli)
        payload: Parsed JSON body or the direct invoke event itself
        raw_event: the event as Lambda delivered it
        timestamp: ISO-8601 UTC creation time
        metadata: Route key, connection id, headers, query string, etc.
    """
    kind: EnvelopeKind
    request_id: str
    source: str
    payload: Dict[str, Any]
    raw_event: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def action(self) -> str:
        """Route key for WebSocket events, payload action otherwise."""
        if self.kind == EnvelopeKind.WEBSOCKET_EVENT:
            return self.route_key
        return self.payload.get("action", "")

    @property
    def is_websocket_event(self) -> bool:
        return self.kind == EnvelopeKind.WEBSOCKET_EVENT

    @property
    def is_action_request(self) -> bool:
        return self.kind == EnvelopeKind.ACTION_REQUEST

    @property
    def route_key(self) -> str:
        return self.metadata.get("routeKey", "")

    @property
    def connection_id(self) -> str:
        return self.metadata.get("connectionId", "")

    @property
    def query(self) -> Dict[str, Any]:
        return self.metadata.get("queryStringParameters") or {}

    @property
    def headers(self) -> Dict[str, Any]:
        return self.metadata.get("headers") or {}

    @property
    def http_method(self) -> str:
        return (self.metadata.get("httpMethod") or "").upper()

    @property
    def path(self) -> str:
        return self.metadata.get("path") or "/"

    @property
    def has_invalid_body(self) -> bool:
        """True when the request body could not be parsed as a JSON object."""
        return bool(self.metadata.get("invalidJson"))

    @property
    def user_id(self) -> str:
        """User the request acts for: body userId, then query string, then anonymous."""
        return self.payload.get("userId") or self.query.get("userId") or "anonymous"

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase form for logs and the CLI."""
        return {
            "kind": self.kind.value,
            "requestId": self.request_id,
            "source": self.source,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }

    @classmethod
    def from_action_request(
        cls,
        payload: Dict[str, Any],
        source: str = "direct",
        request_id: str = None,
        raw_event: Dict[str, Any] = None,
        metadata: Dict[str, Any] = None,
    ) -> "Envelope":
        """Direct invoke, CLI or other action-style request."""
        return cls(
            kind=EnvelopeKind.ACTION_REQUEST,
            request_id=request_id or str(uuid.uuid4()),
            source=source,
            payload=payload,
            raw_event=raw_event or payload,
            metadata=metadata or {},
        )

    @classmethod
    def from_websocket_event(
        cls,
        route_key: str,
        connection_id: str,
        payload: Dict[str, Any] = None,
        query: Dict[str, Any] = None,
        request_id: str = None,
        raw_event: Dict[str, Any] = None,
        metadata: Dict[str, Any] = None,
    ) -> "Envelope":
        """Create envelope for a WebSocket route invocation."""
        meta = {
            "routeKey": route_key,
            "connectionId": connection_id,
            "queryStringParameters": query or {},
        }
        meta.update(metadata or {})
        return cls(
            kind=EnvelopeKind.WEBSOCKET_EVENT,
            request_id=request_id or str(uuid.uuid4()),
            source="websocket",
            payload=payload or {},
            raw_event=raw_event or {},
            metadata=meta,
        )
