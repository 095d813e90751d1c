# Service info routes for the HTTP proxy Lambda
from typing import Any, Dict
from nimble.runtime.dispatch import register
from nimble.runtime.envelope import Envelope
from nimble.runtime.deps import Deps
from handlers.base import iso_now, success_response


@register("GET /", category="http")
def handle_root(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Service banner."""
    return success_response(
        message="Nimble WhatsApp Lambda API",
        status="running",
        timestamp=iso_now(),
    )


@register("GET /api/health", category="http")
def handle_health(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Health check."""
    return success_response(
        status="OK",
        timestamp=iso_now(),
        environment=deps.config["ENVIRONMENT"],
        service="AWS Lambda",
        version=deps.config["SERVICE_VERSION"],
    )
