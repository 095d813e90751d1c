# =============================================================================
# Runtime Package - Unified Dispatch System
# =============================================================================
# Provides a single core dispatch layer invokable via:
# - API Gateway WebSocket routes ($connect, $disconnect, custom, $default)
# - API Gateway HTTP API / Lambda Function URL
# - Lambda direct invoke (broadcast from the chat backend)
# - CLI (developer/admin tooling)
# =============================================================================

from nimble.runtime.envelope import Envelope, EnvelopeKind
from nimble.runtime.parse_event import parse_event, detect_event_source, EventSource
from nimble.runtime.dispatch import dispatch, register
from nimble.runtime.deps import Deps, create_deps, get_deps, resolve_ws_endpoint

__all__ = [
    "Envelope",
    "EnvelopeKind",
    "EventSource",
    "parse_event",
    "detect_event_source",
    "dispatch",
    "register",
    "Deps",
    "create_deps",
    "get_deps",
    "resolve_ws_endpoint",
]
