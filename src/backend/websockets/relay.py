import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import WebSocket
from pydantic import ValidationError

from craft_viz import EventBus, SessionEvent
from craft_viz.config import VisualizerConfig
from craft_viz.layout import LayoutConfig
from craft_viz.models import SearchRequest
from craft_viz.stream import StreamSessionController
from craft_viz.stream.session import Connector

logger = logging.getLogger(__name__)


class VisualizationRelay:
    """
    Bridges frontend WebSockets to search sessions.

    Each connected frontend gets its own StreamSessionController; every session
    event is pushed back to that frontend as a derived-state snapshot.
    """

    def __init__(
        self,
        config: Optional[VisualizerConfig] = None,
        layout_config: Optional[LayoutConfig] = None,
        connector: Optional[Connector] = None,
    ):
        self.config = config
        self.layout_config = layout_config
        self.connector = connector
        # websocket -> controller for cleanup
        self.controllers: Dict[WebSocket, StreamSessionController] = {}
        self.lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> StreamSessionController:
        """Accept a frontend WebSocket and give it a session controller."""
        await websocket.accept()

        event_bus = EventBus()
        event_bus.subscribe_all(self._forwarder(websocket))

        controller = StreamSessionController(
            event_bus,
            config=self.config,
            layout_config=self.layout_config,
            connector=self.connector,
        )
        async with self.lock:
            self.controllers[websocket] = controller

        logger.info(f"Frontend connected. Total connections: {len(self.controllers)}")

        await self._send_to_websocket(websocket, {
            "type": "connection_established",
            "timestamp": datetime.now().isoformat(),
            "message": "Connected to visualization relay",
            "animation_delay_ms": controller.config.animation_delay_ms,
        })
        return controller

    async def disconnect(self, websocket: WebSocket):
        """Stop the frontend's search and forget the connection."""
        async with self.lock:
            controller = self.controllers.pop(websocket, None)
        if controller is not None:
            await controller.stop()
            logger.info("Frontend disconnected, session stopped")

    async def handle_client_message(self, websocket: WebSocket, text: str):
        """Dispatch one frontend message: a search request or a navigation action."""
        if text == "ping":
            await websocket.send_text("pong")
            return

        controller = self.controllers.get(websocket)
        if controller is None:
            logger.warning("Message from unknown WebSocket ignored")
            return

        try:
            message = json.loads(text)
        except json.JSONDecodeError:
            await self._send_error(websocket, "Message is not valid JSON")
            return
        if not isinstance(message, dict):
            await self._send_error(websocket, "Message must be a JSON object")
            return

        action = message.get("action", "search" if "target" in message else None)

        if action == "search":
            try:
                request = SearchRequest(**{k: v for k, v in message.items() if k != "action"})
            except ValidationError as e:
                await self._send_error(websocket, f"Invalid search request: {e.error_count()} validation errors")
                return
            await controller.start(request)
            return

        if action == "stop":
            await controller.stop()
            return

        session = controller.session
        if session is None:
            await self._send_error(websocket, "No active search")
            return

        try:
            if action == "select":
                view = session.select_recipe(int(message.get("index", 0)))
            elif action == "next":
                view = session.next_recipe()
            elif action == "previous":
                view = session.previous_recipe()
            elif action == "resize":
                view = session.resize(float(message.get("width", 800)), float(message.get("height", 600)))
            else:
                await self._send_error(websocket, f"Unknown action: {action}")
                return
        except (TypeError, ValueError) as e:
            await self._send_error(websocket, f"Invalid arguments for {action}: {e}")
            return

        await self._send_to_websocket(websocket, {
            "type": "view",
            "session_id": session.session_id,
            "view": view.model_dump(mode="json"),
        })

    def _forwarder(self, websocket: WebSocket):
        async def forward(event: SessionEvent):
            view = event.data.get("view")
            await self._send_to_websocket(websocket, {
                "type": event.type,
                "session_id": event.session_id,
                "timestamp": event.timestamp.isoformat(),
                "view": view.model_dump(mode="json") if view is not None else None,
            })
        return forward

    async def _send_error(self, websocket: WebSocket, detail: str):
        logger.warning(f"Rejected frontend message: {detail}")
        await self._send_to_websocket(websocket, {"type": "error", "detail": detail})

    async def _send_to_websocket(self, websocket: WebSocket, message: Dict[str, Any]):
        """Send a message to a specific WebSocket."""
        try:
            json_str = json.dumps(message)
            await websocket.send_text(json_str)
        except TypeError as e:
            logger.error(f"JSON serialization error in WebSocket message: {e}")
            logger.error(f"Message keys: {list(message.keys())}")
            raise
        except Exception as e:
            logger.error(f"Error sending WebSocket message: {e}")
            raise

    def get_connection_count(self) -> int:
        return len(self.controllers)
