"""
Search session handling.

SearchSession is a synchronous state machine: every inbound message or
navigation step throws away the derived state and rebuilds it from the
current result. StreamSessionController owns the websocket to the search
server and feeds it, one message at a time, in arrival order.
"""

import asyncio
import contextlib
import json
import logging
import uuid
from typing import Any, AsyncContextManager, Callable, List, Optional

import aiohttp
from pydantic import BaseModel, Field

from craft_viz.bidirectional import build_graph, classify
from craft_viz.config import VisualizerConfig, config as default_config
from craft_viz.dfs import build_trace, replay_visits
from craft_viz.events import EventBus, SessionEvent
from craft_viz.exceptions import MalformedPayloadError, TransportError
from craft_viz.layout import LayoutConfig, layout_dfs, layout_tree
from craft_viz.models import (
    BidirectionalGraph,
    BidirectionalState,
    DFSTrace,
    DFSVisit,
    ErrorMessage,
    Layout,
    ProgressMessage,
    Recipe,
    RecipeNode,
    RecipePayload,
    RecipeResult,
    ResultMessage,
    SearchAlgorithm,
    SearchRequest,
    SearchStats,
    SessionStatus,
)
from craft_viz.recipes import extract_recipes, normalize_payload, parse_message

logger = logging.getLogger(__name__)


class SessionView(BaseModel):
    """Snapshot of everything a renderer needs for the active search."""
    session_id: str
    request: SearchRequest
    status: SessionStatus
    status_text: str
    stats: Optional[SearchStats] = None
    recipe_index: int = 0
    recipe_count: int = 0
    tree: Optional[RecipeNode] = None
    recipes: List[Recipe] = Field(default_factory=list)
    bidirectional: Optional[BidirectionalState] = None
    graph: Optional[BidirectionalGraph] = None
    trace: Optional[DFSTrace] = None
    layout: Optional[Layout] = None
    processing_elements: List[str] = Field(default_factory=list)
    result_text: str = "No results yet."


class SearchSession:
    """Derived state for one search request."""

    def __init__(
        self,
        request: SearchRequest,
        session_id: Optional[str] = None,
        layout_config: Optional[LayoutConfig] = None,
        base_elements: Optional[List[str]] = None,
    ):
        self.request = request
        self.session_id = session_id or str(uuid.uuid4())
        self.layout_config = layout_config or LayoutConfig()
        self.base_elements = list(base_elements or default_config.base_elements)

        self.status = SessionStatus.IDLE
        self.status_text = f"Searching for {request.target}..."
        self.stats: Optional[SearchStats] = None
        self.payload = RecipePayload()
        self.recipe_index = 0
        self.processing_elements: List[str] = [request.target]
        self.result_text = "Searching..."
        self._visits: List[DFSVisit] = []
        self._reset_derived()

    @property
    def target(self) -> str:
        return self.request.target

    @property
    def algorithm(self) -> SearchAlgorithm:
        return self.request.algorithm

    @property
    def current(self) -> Optional[RecipeResult]:
        if not self.payload.results:
            return None
        return self.payload.results[self.recipe_index]

    # --- Lifecycle ---

    def mark_connecting(self) -> None:
        self.status = SessionStatus.CONNECTING

    def mark_connected(self) -> None:
        self.status = SessionStatus.SEARCHING
        self.status_text = "Connected to server. Starting search..."

    def fail_transport(self, reason: str) -> None:
        logger.error(f"Session {self.session_id} transport failure: {reason}")
        self.status = SessionStatus.FAILED
        self.status_text = "Error connecting to server."

    def disconnect(self) -> None:
        """The server closed the stream before sending a result."""
        if not self.status.is_terminal:
            self.status = SessionStatus.FAILED
            self.status_text = "Disconnected from server."
            logger.warning(f"Session {self.session_id}: stream closed before a result arrived")

    def close(self) -> None:
        """Freeze the session. A finished session keeps its final status."""
        if not self.status.is_terminal:
            self.status = SessionStatus.CLOSED
            self.status_text = "Disconnected from server."
            logger.info(f"Session {self.session_id} stopped")

    # --- Messages ---

    def handle_message(self, raw: Any) -> Optional[SessionEvent]:
        """
        Process one inbound message.

        Malformed messages are logged and skipped; nothing is raised past this
        boundary. Returns the event to publish, or None if the message was ignored.
        """
        if self.status.is_terminal:
            logger.warning(f"Session {self.session_id} is {self.status.value}; ignoring message")
            return None

        try:
            message = parse_message(raw)
        except MalformedPayloadError as e:
            logger.warning(f"Skipping malformed message: {e.message}")
            return None

        if isinstance(message, ErrorMessage):
            return self._on_error(message)
        if isinstance(message, ProgressMessage):
            return self._on_progress(message)
        return self._on_result(message)

    def _on_error(self, message: ErrorMessage) -> SessionEvent:
        self.status = SessionStatus.FAILED
        self.status_text = f"Error: {message.error_text}"
        logger.error(f"Search for {self.target} failed: {message.error_text}")
        return self._event("error")

    def _on_progress(self, message: ProgressMessage) -> SessionEvent:
        self.status = SessionStatus.SEARCHING
        self.stats = message.stats

        if self.algorithm == SearchAlgorithm.DFS:
            if message.node is not None:
                self._visits.append(message.node)
                self.status_text = f"DFS exploring... Current: {message.node.element} (depth {message.node.depth})"
                self.result_text = message.node.model_dump_json(indent=2)
                self._reset_derived()
                self.trace = replay_visits(self._visits)
                self.layout = layout_dfs(self.trace.nodes, self.layout_config, self.trace.connections)
            else:
                self.status_text = f"DFS exploring... {message.stats.node_count} nodes visited"
            return self._event("progress")

        if message.element and message.element not in self.processing_elements:
            self.processing_elements.append(message.element)
        self.status_text = f"Processing... Examining element: {message.element}"
        self.result_text = _pretty(message.path)
        self.payload = normalize_payload(message.path)
        self._keep_recipe_index()
        self._rebuild()
        return self._event("progress")

    def _on_result(self, message: ResultMessage) -> SessionEvent:
        self.stats = message.stats
        self.payload = normalize_payload(message.path)
        self._keep_recipe_index()
        self.processing_elements = []
        self.result_text = _pretty(message.path)

        if self.payload.is_empty:
            self.status = SessionStatus.NO_RESULTS
            self.status_text = f"Search completed. No recipes found for {self.target}."
            self._reset_derived()
            logger.info(f"No recipes found for {self.target}")
        else:
            self.status = SessionStatus.COMPLETED
            count = self.payload.recipe_count or len(self.payload.results)
            self.status_text = f"Search completed. Found {count} recipe(s) for {self.target}."
            self._rebuild()
            logger.info(f"Search for {self.target} completed with {count} recipe(s)")
        return self._event("result")

    # --- Navigation ---

    def select_recipe(self, index: int) -> SessionView:
        """Switch to another returned recipe. Out-of-range indexes fall back to the first."""
        if not 0 <= index < len(self.payload.results):
            index = 0
        self.recipe_index = index
        self._rebuild()
        return self.view()

    def _keep_recipe_index(self) -> None:
        # A new payload keeps the selected recipe unless it no longer exists
        if self.recipe_index >= len(self.payload.results):
            self.recipe_index = 0

    def next_recipe(self) -> SessionView:
        if self.recipe_index < len(self.payload.results) - 1:
            return self.select_recipe(self.recipe_index + 1)
        return self.view()

    def previous_recipe(self) -> SessionView:
        if self.recipe_index > 0:
            return self.select_recipe(self.recipe_index - 1)
        return self.view()

    def resize(self, width: float, height: float) -> SessionView:
        """Recompute the layout for a new viewport."""
        self.layout_config = self.layout_config.resized(width, height)
        if self.trace is not None and self.trace.nodes:
            self.layout = layout_dfs(self.trace.nodes, self.layout_config, self.trace.connections)
        elif self.tree is not None and self.algorithm == SearchAlgorithm.BFS:
            self.layout = layout_tree(self.tree, self.layout_config)
        return self.view()

    # --- Derived state ---

    def _reset_derived(self) -> None:
        self.tree: Optional[RecipeNode] = None
        self.recipes: List[Recipe] = []
        self.bidirectional: Optional[BidirectionalState] = None
        self.graph: Optional[BidirectionalGraph] = None
        self.trace: Optional[DFSTrace] = None
        self.layout: Optional[Layout] = None

    def _rebuild(self) -> None:
        self._reset_derived()
        current = self.current
        if current is None:
            return

        self.tree = current.tree
        self.recipes = extract_recipes(current.tree)

        if self.algorithm == SearchAlgorithm.BIDIRECTIONAL:
            self.bidirectional = classify(current, self.target, self.base_elements)
            self.graph = build_graph(self.bidirectional, self.base_elements)
        elif self.algorithm == SearchAlgorithm.DFS:
            self.trace = build_trace(current.tree)
            self.layout = layout_dfs(self.trace.nodes, self.layout_config, self.trace.connections)
        elif current.tree is not None:
            self.layout = layout_tree(current.tree, self.layout_config)

    def view(self) -> SessionView:
        return SessionView(
            session_id=self.session_id,
            request=self.request,
            status=self.status,
            status_text=self.status_text,
            stats=self.stats,
            recipe_index=self.recipe_index,
            recipe_count=len(self.payload.results),
            tree=self.tree,
            recipes=list(self.recipes),
            bidirectional=self.bidirectional,
            graph=self.graph,
            trace=self.trace,
            layout=self.layout,
            processing_elements=list(self.processing_elements),
            result_text=self.result_text,
        )

    def _event(self, event_type: str) -> SessionEvent:
        return SessionEvent(type=event_type, session_id=self.session_id, data={"view": self.view()})


def _pretty(path: Any) -> str:
    try:
        return json.dumps(path, indent=2)
    except (TypeError, ValueError):
        return str(path)


Connector = Callable[[str], AsyncContextManager[Any]]


@contextlib.asynccontextmanager
async def _aiohttp_connect(url: str, timeout_s: float):
    timeout = aiohttp.ClientTimeout(total=None, connect=timeout_s)
    async with aiohttp.ClientSession(timeout=timeout) as http:
        async with http.ws_connect(url) as ws:
            yield ws


class StreamSessionController:
    """
    Owns the connection to the search server for the active search.

    Starting a new search tears down the previous one first, so events for a
    superseded request are never published.
    """

    def __init__(
        self,
        event_bus: EventBus,
        config: Optional[VisualizerConfig] = None,
        layout_config: Optional[LayoutConfig] = None,
        connector: Optional[Connector] = None,
    ):
        self.event_bus = event_bus
        self.config = config or default_config
        self.layout_config = layout_config or LayoutConfig(
            width=self.config.viewport_width, height=self.config.viewport_height
        )
        self._connector = connector or (lambda url: _aiohttp_connect(url, self.config.connect_timeout_s))
        self.session: Optional[SearchSession] = None
        self._task: Optional[asyncio.Task] = None

    async def start(self, request: SearchRequest) -> SearchSession:
        """Cancel any running search and start a new one."""
        await self.stop()
        session = SearchSession(request, layout_config=self.layout_config, base_elements=self.config.base_elements)
        self.session = session
        self._task = asyncio.create_task(self._run(session))
        logger.info(
            f"Started session {session.session_id}: {request.target} "
            f"({request.algorithm.value}, {request.mode.value}, limit={request.limit})"
        )
        return session

    async def stop(self) -> None:
        """Tear down the running search, if any."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self.session is not None:
            self.session.close()

    async def wait(self) -> Optional[SearchSession]:
        """Wait for the running search to finish and return its session."""
        task, session = self._task, self.session
        if task is not None:
            # Cancelled by stop()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        return session

    async def _run(self, session: SearchSession) -> None:
        session.mark_connecting()
        await self._publish(session, "status")
        try:
            async with self._connector(self.config.websocket_url) as ws:
                session.mark_connected()
                await self._publish(session, "status")
                await ws.send_json(session.request.model_dump(mode="json"))

                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        event = session.handle_message(msg.data)
                        if event is not None:
                            await self.event_bus.publish(event)
                        if session.status.is_terminal:
                            break
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        raise TransportError(f"Websocket error: {ws.exception()}")
                    else:
                        logger.debug(f"Stream for {session.session_id} ended with {msg.type}")
                        break

        except (aiohttp.ClientError, asyncio.TimeoutError, TransportError) as e:
            session.fail_transport(str(e))
            await self._publish(session, "error")
            return

        if not session.status.is_terminal:
            session.disconnect()
            await self._publish(session, "closed")

    async def _publish(self, session: SearchSession, event_type: str) -> None:
        await self.event_bus.publish(SessionEvent(
            type=event_type, session_id=session.session_id, data={"view": session.view()}
        ))
