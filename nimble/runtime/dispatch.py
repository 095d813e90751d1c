# =============================================================================
# Route Registry and Dispatcher
# =============================================================================
# Every WebSocket route, HTTP route ("METHOD /path") and direct-invoke action
# is a key in one registry. Lambda adapters and the CLI build an Envelope
# and hand it to dispatch().
# =============================================================================

import importlib
import logging
from typing import Any, Callable, Dict, List, Tuple
from nimble.runtime.envelope import Envelope
from nimble.runtime.deps import Deps, get_deps

logger = logging.getLogger(__name__)

RouteHandler = Callable[[Envelope, Deps], Dict[str, Any]]

DEFAULT_ROUTE = "$default"

# Imported on first dispatch so their @register decorators run
HANDLER_MODULES = (
    "handlers.connections",
    "handlers.messaging",
    "handlers.broadcast",
    "handlers.api_routes",
    "handlers.whatsapp_oauth",
)

# =============================================================================
# REGISTRY
# =============================================================================
_ROUTES: Dict[str, RouteHandler] = {}
_ROUTE_INFO: Dict[str, Dict[str, Any]] = {}
_modules_loaded = False


def register(action: str, category: str = "general", description: str = None, requires: List[str] = None):
    """
    Register a route handler under a route key or action name.

    Usage:
        @register("fetchMessages", category="websocket")
        def handle_fetch_messages(envelope: Envelope, deps: Deps) -> Dict:
            ...

        @register("broadcast", category="direct", requires=["user_id"])
        def handle_broadcast(envelope: Envelope, deps: Deps) -> Dict:
            ...
    """
    def wrap(func: RouteHandler) -> RouteHandler:
        register_handler(action, func, category, description, requires)
        return func
    return wrap


def register_handler(action: str, handler: RouteHandler, category: str = "general",
                     description: str = None, requires: List[str] = None) -> None:
    if not description:
        doc = (handler.__doc__ or "").strip()
        description = doc.splitlines()[0] if doc else action

    if action in _ROUTES and _ROUTES[action] is not handler:
        logger.warning(f"Route {action} re-registered by {handler.__module__}.{handler.__name__}")

    _ROUTES[action] = handler
    _ROUTE_INFO[action] = {
        "category": category,
        "description": description,
        "requires": list(requires or []),
        "handler": f"{handler.__module__}.{handler.__name__}",
    }


def load_handler_modules() -> None:
    global _modules_loaded
    if _modules_loaded:
        return
    _modules_loaded = True

    for module in HANDLER_MODULES:
        importlib.import_module(module)
    logger.info(f"Route registry ready: {len(_ROUTES)} routes")


def handler_exists(action: str) -> bool:
    load_handler_modules()
    return action in _ROUTES


def get_handlers_by_category() -> Dict[str, List[str]]:
    """Route keys grouped by category, each list sorted."""
    load_handler_modules()
    grouped: Dict[str, List[str]] = {}
    for action in sorted(_ROUTE_INFO):
        grouped.setdefault(_ROUTE_INFO[action]["category"], []).append(action)
    return grouped


# =============================================================================
# DISPATCH
# =============================================================================

def _resolve(envelope: Envelope, route: str = None) -> Tuple[str, RouteHandler]:
    """Registry key and handler for an envelope; handler is None when unknown."""
    action = route or envelope.action
    handler = _ROUTES.get(action)

    if handler is None and envelope.is_websocket_event:
        # Custom routes nobody registered are handled like $default
        logger.info(f"No handler for route {action}, using {DEFAULT_ROUTE}")
        return DEFAULT_ROUTE, _ROUTES.get(DEFAULT_ROUTE)
    return action, handler


def dispatch(envelope: Envelope, deps: Deps = None, route: str = None) -> Dict[str, Any]:
    """
    Run the handler registered for an envelope.

    Args:
        envelope: parsed event
        deps: clients and config; the process-wide Deps when omitted
        route: registry key to use instead of envelope.action (HTTP routes)

    Returns:
        Handler result stamped with _requestId and _action. Unknown actions,
        missing required fields and handler exceptions come back as
        400/400/500 results rather than raising.
    """
    deps = deps or get_deps()

    if not (route or envelope.action):
        logger.warning(f"Envelope without action from {envelope.source}")
        return {
            "statusCode": 400,
            "error": "No action specified",
            "hint": "Direct invokes need an 'action' field",
        }

    load_handler_modules()
    action, handler = _resolve(envelope, route)

    if handler is None:
        logger.warning(f"No handler registered for {action}")
        return {
            "statusCode": 400,
            "error": f"Unknown action: {action}",
            "availableActions": sorted(_ROUTES)[:20],
            "hint": "Run list_actions for the full route table",
        }

    missing = [f for f in _ROUTE_INFO[action]["requires"] if not envelope.get(f)]
    if missing:
        logger.warning(f"{action} rejected, missing {missing}")
        return {
            "statusCode": 400,
            "error": f"Missing required fields: {', '.join(missing)}",
            "action": action,
        }

    logger.info(f"Dispatching {action} ({envelope.kind.value} from {envelope.source})")

    try:
        result = handler(envelope, deps)
    except Exception as e:
        logger.exception(f"Handler {action} failed: {e}")
        return {
            "statusCode": 500,
            "error": "Internal server error",
            "message": str(e),
            "action": action,
            "_requestId": envelope.request_id,
        }

    if isinstance(result, dict):
        result["_requestId"] = envelope.request_id
        result["_action"] = action
    return result


# =============================================================================
# BUILT-IN ROUTES
# =============================================================================

@register("help", category="utility", description="Route table grouped by category")
def handle_help(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    grouped = get_handlers_by_category()
    return {
        "statusCode": 200,
        "totalActions": len(_ROUTES),
        "categories": {
            category: {"count": len(actions), "actions": actions}
            for category, actions in sorted(grouped.items())
        },
    }


@register("list_actions", category="utility", description="Route keys with descriptions")
def handle_list_actions(envelope: Envelope, deps: Deps) -> Dict[str, Any]:
    """Every route, or only one category's when 'category' is given."""
    category = envelope.get("category")
    load_handler_modules()

    actions = [a for a in sorted(_ROUTE_INFO) if not category or _ROUTE_INFO[a]["category"] == category]
    response = {
        "statusCode": 200,
        "count": len(actions),
        "actions": {a: _ROUTE_INFO[a]["description"] for a in actions},
    }
    if category:
        response["category"] = category
    return response
