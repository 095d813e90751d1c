# =============================================================================
# WebSocket Service - Dashboard Realtime Client
# =============================================================================
# One socket per signed-in user against the NimbleAI WebSocket API.
#
# - Requests stored messages (fetch_messages) every time the socket opens
# - Routes inbound frames by their "type" to registered handlers
# - Reconnects with exponential backoff, up to max_reconnect_attempts
#   consecutive failures (the counter resets on every successful open)
#
# Usage:
#   service = WebSocketService()
#   service.initialize()
#   service.on_message("database_messages", lambda data: print(data["messages"]))
#   service.on_connection(lambda status, detail: print(status))
#   await service.connect("user-123")
#   await service.send_message_to_database("Hello", sender_name="Agent")
# =============================================================================

import asyncio
import json
import logging
import os
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

logger = logging.getLogger(__name__)

ENDPOINT_ENV = "NIMBLE_WEBSOCKET_API_GATEWAY"
FALLBACK_ENDPOINT = "wss://your-api-gateway-id.execute-api.ap-south-1.amazonaws.com/dev"

DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_DELAY_SECONDS = 1.0

# encodeURIComponent-compatible
_URI_COMPONENT_SAFE = "-_.!~*'()"

MessageHandler = Callable[[Dict[str, Any]], None]
ConnectionHandler = Callable[[str, Any], None]


class WebSocketService:
    """Reconnecting WebSocket client with type-based message routing."""

    def __init__(
        self,
        endpoint: str = None,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
        connector: Callable[..., Any] = None,
    ):
        """
        Args:
            endpoint: WebSocket API URL (wss://...). When omitted the
                NIMBLE_WEBSOCKET_API_GATEWAY environment variable is used.
            max_reconnect_attempts: consecutive reconnects before giving up
            reconnect_delay: base backoff delay in seconds
            connector: coroutine factory opening a connection, defaults to
                websockets.connect
        """
        self.ws = None
        self.user_id: Optional[str] = None
        self.is_connected = False
        self.reconnect_attempts = 0
        self.max_reconnect_attempts = max_reconnect_attempts
        self.base_reconnect_delay = reconnect_delay
        self.reconnect_delay = reconnect_delay
        self.api_gateway_endpoint = endpoint
        self._connector = connector or websockets.connect
        self._message_handlers: Dict[str, Dict[MessageHandler, None]] = {}
        self._connection_handlers: Dict[int, ConnectionHandler] = {}
        self._connection_handler_id = 0
        self._listener: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

    # =========================================================================
    # CONNECTION
    # =========================================================================

    def initialize(self) -> str:
        """Resolve the API Gateway endpoint from the environment."""
        self.api_gateway_endpoint = self.api_gateway_endpoint or os.environ.get(ENDPOINT_ENV)
        if not self.api_gateway_endpoint:
            logger.warning(f"{ENDPOINT_ENV} not set, using fallback URL")
            self.api_gateway_endpoint = FALLBACK_ENDPOINT

        logger.info(f"WebSocket API Gateway endpoint: {self.api_gateway_endpoint}")
        return self.api_gateway_endpoint

    def build_websocket_url(self, user_id: str) -> str:
        """
        Local and plain ws:// backends take the user id as a path segment;
        API Gateway takes it as the userId query parameter.
        """
        base_url = self.api_gateway_endpoint or os.environ.get(ENDPOINT_ENV) or FALLBACK_ENDPOINT
        encoded = quote(str(user_id), safe=_URI_COMPONENT_SAFE)

        if "localhost" in base_url or "127.0.0.1" in base_url or "ws://" in base_url:
            return f"{base_url}/{encoded}"
        return f"{base_url}?userId={encoded}"

    @property
    def is_open(self) -> bool:
        return self.ws is not None and self.is_connected

    async def connect(self, user_id: str) -> None:
        """Open the socket for user_id, or re-request messages if already open."""
        if self.is_open:
            logger.info("WebSocket already connected")
            await self.request_user_messages(user_id)
            return

        self.user_id = user_id
        url = self.build_websocket_url(user_id)
        logger.info(f"Connecting to WebSocket: {url}")

        try:
            ws = await self._connector(url)
        except (OSError, asyncio.TimeoutError, InvalidURI, InvalidHandshake) as e:
            logger.error(f"WebSocket error: {e}")
            self._notify_connection_handlers("error", e)
            self._handle_close(1006, str(e))
            return

        self.ws = ws
        await self._handle_open(user_id)
        self._listener = asyncio.get_running_loop().create_task(self._listen(ws))

    async def _handle_open(self, user_id: str) -> None:
        logger.info("WebSocket connected")
        self.is_connected = True
        self.reconnect_attempts = 0
        self.reconnect_delay = self.base_reconnect_delay
        self._notify_connection_handlers("connected")

        await self.request_user_messages(user_id)

    async def _listen(self, ws) -> None:
        try:
            async for raw in ws:
                self._handle_raw(raw)
        except ConnectionClosed:
            pass

        if ws is not self.ws:
            # disconnect() or a newer connection took over
            return
        self._handle_close(ws.close_code, ws.close_reason)

    def _handle_close(self, code: Optional[int], reason: str) -> None:
        logger.info(f"WebSocket disconnected: {code} {reason}")
        self.ws = None
        self.is_connected = False
        self._notify_connection_handlers("disconnected", {"code": code, "reason": reason})

        if not self.user_id:
            return
        if self.reconnect_attempts < self.max_reconnect_attempts:
            self._schedule_reconnect()
        else:
            logger.warning(f"Giving up after {self.reconnect_attempts} reconnect attempts")

    def next_reconnect_delay(self, attempt: int = None) -> float:
        """Backoff before reconnect attempt n: reconnect_delay * 2^(n-1)."""
        n = attempt if attempt is not None else self.reconnect_attempts
        return self.reconnect_delay * (2 ** max(n - 1, 0))

    def _schedule_reconnect(self) -> None:
        self.reconnect_attempts += 1
        delay = self.next_reconnect_delay()

        logger.info(f"Scheduling reconnect attempt {self.reconnect_attempts} in {delay}s")
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self.user_id:
            logger.info("Attempting to reconnect...")
            await self.connect(self.user_id)

    async def disconnect(self) -> None:
        """Close the socket and forget the user and every handler. No reconnect follows."""
        ws = self.ws
        self.ws = None
        self.is_connected = False
        self.user_id = None
        self._message_handlers.clear()
        self._connection_handlers.clear()

        current = asyncio.current_task()
        if self._reconnect_task and self._reconnect_task is not current and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None

        if ws is not None:
            await ws.close()

    def get_connection_status(self) -> Dict[str, Any]:
        return {
            "isConnected": self.is_connected,
            "reconnectAttempts": self.reconnect_attempts,
            "userId": self.user_id,
        }

    # =========================================================================
    # OUTBOUND
    # =========================================================================

    async def send_message(self, type: str, data: Dict[str, Any] = None) -> bool:
        """Send a typed frame. Returns False when the socket is not open."""
        if not self.is_open:
            logger.error("WebSocket not connected")
            return False

        message = {"type": type, **(data or {})}
        logger.debug(f"Sending WebSocket message: {message}")
        try:
            await self.ws.send(json.dumps(message))
        except ConnectionClosed as e:
            logger.error(f"WebSocket closed while sending {type}: {e}")
            return False
        return True

    async def request_user_messages(self, user_id: str) -> bool:
        """Ask the backend for the user's stored messages."""
        logger.info(f"Requesting messages for user: {user_id}")
        return await self.send_message("fetch_messages", {"userId": user_id})

    async def send_message_to_database(self, message: str, sender_name: str = "User",
                                       sender_number: str = "") -> bool:
        """Store a new chat message through the backend."""
        return await self.send_message("store_message", {
            "userId": self.user_id,
            "message": message,
            "senderName": sender_name,
            "senderNumber": sender_number,
            "time_stamp": int(time.time()),
        })

    async def send_question(self, question: str, comp_name: str = "NimbleAI",
                            specialization: str = "AI chatbots", sender_name: str = "User",
                            sender_number: str = "", time_stamp: int = None) -> bool:
        """Older call signature; now stores the question like any other message."""
        return await self.send_message_to_database(question, sender_name, sender_number)

    async def send_ping(self) -> bool:
        return await self.send_message("ping", {"timestamp": int(time.time() * 1000)})

    # =========================================================================
    # INBOUND
    # =========================================================================

    def _handle_raw(self, raw: Any) -> None:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Error parsing WebSocket message: {e}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object WebSocket frame: {data!r}")
            return

        logger.debug(f"WebSocket message received: {data}")
        self.handle_message(data)

    def handle_message(self, data: Dict[str, Any]) -> None:
        """Call every handler registered for the frame's type."""
        message_type = data.get("type")
        for handler in list(self._message_handlers.get(message_type, {})):
            try:
                handler(data)
            except Exception:
                logger.exception(f"Error in message handler for type {message_type}")

    def on_message(self, type: str, handler: MessageHandler) -> None:
        self._message_handlers.setdefault(type, {})[handler] = None

    def off_message(self, type: str, handler: MessageHandler) -> None:
        self._message_handlers.get(type, {}).pop(handler, None)

    def on_connection(self, handler: ConnectionHandler) -> int:
        """Register a (status, detail) callback; returns an id for off_connection."""
        self._connection_handler_id += 1
        self._connection_handlers[self._connection_handler_id] = handler
        return self._connection_handler_id

    def off_connection(self, handler_id: int) -> None:
        self._connection_handlers.pop(handler_id, None)

    def _notify_connection_handlers(self, status: str, detail: Any = None) -> None:
        for handler in list(self._connection_handlers.values()):
            try:
                handler(status, detail)
            except Exception:
                logger.exception("Error in connection handler")


# Shared instance for the dashboard process
websocket_service = WebSocketService()
