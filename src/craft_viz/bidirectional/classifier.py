"""
Bidirectional search classification.

Turns a backend response into forward/backward/meeting sets. When the backend
sends explicit visited maps they are used as-is; otherwise the split is
reconstructed from the recipe tree, which is only an approximation of the
real search frontier and is meant for visualization.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from craft_viz.models import (
    BASE_ELEMENTS,
    BidirectionalGraph,
    BidirectionalState,
    GraphLink,
    GraphNode,
    NodeGroup,
    RecipeNode,
    RecipeResult,
    VisitedSets,
)
from craft_viz.recipes.normalizer import normalize_payload

logger = logging.getLogger(__name__)

ClassifierInput = Union[RecipeResult, RecipeNode, Mapping[str, Any], None]


def classify(
    response: ClassifierInput,
    target: str,
    base_elements: Sequence[str] = BASE_ELEMENTS,
) -> BidirectionalState:
    """
    Classify a single recipe response for bidirectional visualization.

    Args:
        response: A normalized RecipeResult, a bare RecipeNode, or a raw `path` dict.
        target: The requested target element, always placed in the backward set.
        base_elements: Elements always placed in the forward set.

    Returns:
        A fresh BidirectionalState. An empty response yields an empty state.
    """
    result = _as_result(response)
    if result is None or (result.tree is None and result.visited is None):
        logger.debug(f"Nothing to classify for {target}")
        return BidirectionalState.empty()

    forward: Set[str] = set(base_elements)
    backward: Set[str] = {target}
    connections: Dict[str, List[str]] = {}

    if result.is_explicit:
        _classify_explicit(result.visited, forward, backward, connections)
    else:
        _classify_tree(result.tree, target, set(base_elements), forward, backward, connections)

    meeting = forward & backward

    if result.is_explicit:
        advisory = set(result.visited.meeting_points) - meeting
        if advisory:
            logger.debug(f"Ignoring meeting points outside both frontiers: {sorted(advisory)}")

    logger.debug(
        f"Classified {target}: forward={len(forward)} backward={len(backward)} "
        f"meeting={len(meeting)} connections={len(connections)}"
    )
    return BidirectionalState(
        forward=forward,
        backward=backward,
        meeting=meeting,
        connections=connections,
        explicit=result.is_explicit,
    )


def _as_result(response: ClassifierInput) -> Optional[RecipeResult]:
    if response is None:
        return None
    if isinstance(response, RecipeResult):
        return response
    if isinstance(response, RecipeNode):
        return RecipeResult(tree=response)
    payload = normalize_payload(response)
    return payload.results[0] if payload.results else None


def _classify_explicit(
    visited: VisitedSets,
    forward: Set[str],
    backward: Set[str],
    connections: Dict[str, List[str]],
) -> None:
    for element, ingredients in visited.forward.items():
        forward.add(element)
        if ingredients:
            connections[element] = list(ingredients)

    for element, ingredients in visited.backward.items():
        backward.add(element)
        if ingredients:
            connections[element] = list(ingredients)


def find_path_to_target(root: RecipeNode, target: str) -> List[RecipeNode]:
    """
    Return the nodes from `root` down to the first node whose element is `target`.

    Depth-first, children tried in ingredient order. Empty if the target is absent.
    """
    path: List[RecipeNode] = []
    return path if _search(root, target, path) else []


def _search(node: RecipeNode, target: str, path: List[RecipeNode]) -> bool:
    path.append(node)
    if node.element == target:
        return True
    for child in node.recipes:
        if _search(child, target, path):
            return True
    path.pop()
    return False


def _classify_tree(
    root: RecipeNode,
    target: str,
    base: Set[str],
    forward: Set[str],
    backward: Set[str],
    connections: Dict[str, List[str]],
) -> None:
    on_path = {id(node) for node in find_path_to_target(root, target)}

    stack = [root]
    while stack:
        node = stack.pop()
        element = node.element

        if element in base:
            forward.add(element)
        if element == target:
            backward.add(element)

        if node.is_leaf:
            if node is root and element != target and element not in base:
                forward.add(element)
            continue

        ingredients = [child.element for child in node.recipes]
        connections[element] = ingredients

        side = backward if (id(node) in on_path or element == target) else forward
        side.add(element)
        side.update(ingredients)

        # Reverse so ingredients are visited in recipe order
        stack.extend(reversed(node.recipes))


def build_graph(
    state: BidirectionalState,
    base_elements: Iterable[str] = BASE_ELEMENTS,
) -> BidirectionalGraph:
    """
    Build the render graph for a classified state.

    Connections that mention an element outside both sets are dropped rather
    than inventing a node for it.
    """
    base = list(base_elements)
    nodes: List[GraphNode] = []
    for element in _ordered(state.forward | state.backward, base):
        if element in state.meeting:
            group = NodeGroup.MEETING
        elif element in state.forward:
            group = NodeGroup.FORWARD
        else:
            group = NodeGroup.BACKWARD
        nodes.append(GraphNode(id=element, group=group, is_base=element in base))

    known = state.forward | state.backward
    links: List[GraphLink] = []
    for element in sorted(state.connections):
        if element not in known:
            logger.debug(f"Dropping connection for unclassified element {element}")
            continue
        for ingredient in state.connections[element]:
            if ingredient not in known:
                logger.debug(f"Dropping link {ingredient} -> {element}: ingredient not classified")
                continue
            links.append(GraphLink(source=ingredient, target=element, type=_link_type(state, ingredient, element)))

    return BidirectionalGraph(nodes=nodes, links=links)


def _link_type(state: BidirectionalState, source: str, target: str) -> NodeGroup:
    if source in state.forward and target in state.forward:
        return NodeGroup.FORWARD
    if source in state.backward and target in state.backward:
        return NodeGroup.BACKWARD
    return NodeGroup.MEETING


def _ordered(elements: Set[str], base: List[str]) -> List[str]:
    """Base elements first in their canonical order, then the rest alphabetically."""
    head = [e for e in base if e in elements]
    return head + sorted(elements - set(head))
