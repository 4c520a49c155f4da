"""
Normalization of raw search-server messages.

The server is loose about shapes: a `path` may be a single recipe tree, a
`{recipes, recipeCount}` envelope, or carry explicit bidirectional visited
maps in either camelCase or PascalCase. Everything downstream consumes the
canonical models produced here and never looks at raw dicts.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError

from craft_viz.exceptions import MalformedPayloadError
from craft_viz.models import (
    RecipeNode,
    RecipePayload,
    RecipeResult,
    StreamMessage,
    VisitedSets,
)

logger = logging.getLogger(__name__)

_message_adapter = TypeAdapter(StreamMessage)

FORWARD_KEYS = ("forwardVisited", "ForwardVisited")
BACKWARD_KEYS = ("backwardVisited", "BackwardVisited")
MEETING_KEYS = ("meetingPoints", "MeetingPoints")
RECIPE_KEYS = ("Recipe", "recipe")


def parse_message(raw: Union[str, bytes, Mapping[str, Any]]) -> StreamMessage:
    """
    Parse one inbound frame into a tagged message variant.

    Raises:
        MalformedPayloadError: if the frame is not JSON or has no usable `type`.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedPayloadError(f"Message is not valid JSON: {e}")

    if not isinstance(raw, Mapping):
        raise MalformedPayloadError(f"Message must be a JSON object, got {type(raw).__name__}")

    data = dict(raw)
    node = data.get("node")
    if node is not None and not _is_valid_visit(node):
        logger.warning(f"Dropping malformed DFS node in {data.get('type')} message: {node!r}")
        data.pop("node")

    try:
        return _message_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedPayloadError(f"Unrecognized message (type={data.get('type')!r}): {e.error_count()} validation errors")


def _is_valid_visit(node: Any) -> bool:
    if not isinstance(node, Mapping):
        return False
    element = node.get("element")
    depth = node.get("depth")
    return isinstance(element, str) and bool(element) and isinstance(depth, int) and depth >= 0


def parse_tree(raw: Any) -> Optional[RecipeNode]:
    """
    Build a RecipeNode from a raw dict, skipping malformed sub-trees.

    A node without a usable `element` is dropped (with a warning) together with
    its sub-tree; its siblings are kept. A missing or null `recipes` field
    means a leaf.
    """
    if not isinstance(raw, Mapping):
        logger.warning(f"Skipping malformed recipe node (not an object): {raw!r}")
        return None

    element = raw.get("element")
    if not isinstance(element, str) or not element:
        logger.warning(f"Skipping recipe node without element: {_preview(raw)}")
        return None

    children = raw.get("recipes")
    if children is None:
        children = []
    elif not isinstance(children, list):
        logger.warning(f"Skipping recipe node {element!r}: recipes is {type(children).__name__}, not a list")
        return None

    parsed = [child for child in (parse_tree(c) for c in children) if child is not None]
    return RecipeNode(element=element, recipes=parsed)


def read_visited(raw: Mapping[str, Any]) -> Optional[VisitedSets]:
    """Extract explicit visited maps, accepting both key casings. None if there are none."""
    forward = _first_present(raw, FORWARD_KEYS)
    backward = _first_present(raw, BACKWARD_KEYS)
    if forward is None and backward is None:
        return None

    meeting = _first_present(raw, MEETING_KEYS) or []
    if not isinstance(meeting, list):
        logger.warning(f"Ignoring meeting points of type {type(meeting).__name__}")
        meeting = []

    return VisitedSets(
        forward=_read_visited_map(forward),
        backward=_read_visited_map(backward),
        meeting_points=[m for m in meeting if isinstance(m, str) and m],
    )


def _read_visited_map(raw: Any) -> Dict[str, List[str]]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        logger.warning(f"Ignoring visited map of type {type(raw).__name__}")
        return {}

    visited: Dict[str, List[str]] = {}
    for element, info in raw.items():
        if not isinstance(element, str) or not element:
            continue
        ingredients: List[str] = []
        if isinstance(info, Mapping):
            recipe = _first_present(info, RECIPE_KEYS)
            if isinstance(recipe, list):
                ingredients = [i for i in recipe if isinstance(i, str) and i]
        visited[element] = ingredients
    return visited


def normalize_payload(path: Any) -> RecipePayload:
    """
    Map any `path` shape onto a RecipePayload.

    Never raises: an unusable payload yields an empty RecipePayload.
    """
    if path is None:
        return RecipePayload()

    if isinstance(path, list):
        results = _read_results(path, inherited=None)
        return RecipePayload(results=results, recipe_count=len(results))

    if not isinstance(path, Mapping):
        logger.warning(f"Invalid payload type received from server: {type(path).__name__}")
        return RecipePayload()

    if "error" in path and "element" not in path:
        logger.warning(f"Payload carries an error instead of recipes: {path.get('error')}")
        return RecipePayload()

    visited = read_visited(path)

    # Multiple-recipe envelope: {recipes: [...], recipeCount: n} without an element of its own
    if "element" not in path and isinstance(path.get("recipes"), list):
        results = _read_results(path["recipes"], inherited=visited)
        count = path.get("recipeCount")
        recipe_count = count if isinstance(count, int) and count >= 0 else len(results)
        logger.debug(f"Found {len(results)} recipes in response (recipeCount={count})")
        return RecipePayload(results=results, recipe_count=recipe_count)

    if "element" in path:
        tree = parse_tree(path)
        if tree is None and visited is None:
            return RecipePayload()
        return RecipePayload(results=[RecipeResult(tree=tree, visited=visited)], recipe_count=1)

    if visited is not None:
        return RecipePayload(results=[RecipeResult(visited=visited)], recipe_count=1)

    logger.warning(f"Invalid data format received from server: {_preview(path)}")
    return RecipePayload()


def _read_results(entries: List[Any], inherited: Optional[VisitedSets]) -> List[RecipeResult]:
    results: List[RecipeResult] = []
    for entry in entries:
        tree = parse_tree(entry)
        if tree is None:
            continue
        own = read_visited(entry) if isinstance(entry, Mapping) else None
        results.append(RecipeResult(tree=tree, visited=own or inherited))
    return results


def _first_present(raw: Mapping[str, Any], keys) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _preview(raw: Any, limit: int = 120) -> str:
    text = repr(raw)
    return text if len(text) <= limit else text[:limit] + "..."
