"""
Session events.

A StreamSessionController publishes one SessionEvent per state change of its
search session; renderers (the CLI, the websocket relay) subscribe to the
types they draw. Every event carries the session's SessionView in
`data["view"]`.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Callable, Awaitable, Any
from collections import defaultdict
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# status: connecting/connected, progress/result/error: one per inbound message,
# closed: the stream ended before a result
SESSION_EVENT_TYPES = ("status", "progress", "result", "error", "closed")

SessionHandler = Callable[["SessionEvent"], Awaitable[None]]


class SessionEvent(BaseModel):
    """A state change of one search session."""
    type: str = Field(..., min_length=1, description="One of SESSION_EVENT_TYPES")
    session_id: str = Field(..., min_length=1, description="Session that changed")
    data: Dict[str, Any] = Field(default_factory=dict, description="Usually {'view': SessionView}")
    timestamp: datetime = Field(default_factory=datetime.now)


class EventBus:
    """
    Fans session events out to renderers.

    Handlers for one event run concurrently. A renderer that raises is logged
    and does not keep the others, or the session feeding the bus, from
    getting on with the stream.
    """

    def __init__(self):
        self._handlers: Dict[str, List[SessionHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: SessionHandler):
        self._handlers[event_type].append(handler)
        logger.debug(f"Renderer subscribed to {event_type} events")

    def subscribe_all(self, handler: SessionHandler):
        """Subscribe one handler to every session event type."""
        for event_type in SESSION_EVENT_TYPES:
            self.subscribe(event_type, handler)

    def unsubscribe(self, event_type: str, handler: SessionHandler):
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    async def publish(self, event: SessionEvent):
        """Deliver an event to every renderer subscribed to its type."""
        # Copy so a handler may unsubscribe while being called
        handlers = list(self._handlers[event.type])
        if not handlers:
            logger.debug(f"Session {event.session_id}: nobody renders {event.type} events")
            return

        outcomes = await asyncio.gather(
            *[self._deliver(handler, event) for handler in handlers],
            return_exceptions=True
        )
        failed = sum(1 for outcome in outcomes if isinstance(outcome, Exception))
        if failed:
            logger.error(f"Session {event.session_id}: {failed} of {len(handlers)} renderers failed on {event.type}")

    async def _deliver(self, handler: SessionHandler, event: SessionEvent):
        try:
            await handler(event)
        except Exception as e:
            logger.error(
                f"Renderer {getattr(handler, '__name__', handler)} failed on {event.type} "
                f"for session {event.session_id}: {e}",
                exc_info=True,
            )
            raise

    def get_subscriber_count(self, event_type: str) -> int:
        return len(self._handlers[event_type])
