"""
DFS trace reconstruction.

The backend returns finished recipe trees, but the DFS view animates the
order a depth-first search would have visited them in. This module rebuilds
that order, deduplicates revisits, and tracks parent/child connections plus
the path from the root to the most recent node.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from craft_viz.models import Connection, DFSNode, DFSTrace, DFSVisit, RecipeNode

logger = logging.getLogger(__name__)


class DFSTraceBuilder:
    """
    Accumulates node visits into a DFSTrace.

    A visit is ignored when a node with the same (element, depth, parent)
    already exists. Ids are assigned sequentially, so replaying the same
    visits yields the same trace.
    """

    def __init__(self):
        self.nodes: List[DFSNode] = []
        self.connections: List[Connection] = []
        self.current_path: List[str] = []
        self._keys: Set[Tuple[str, int, Optional[str]]] = set()
        self._by_position: Dict[Tuple[str, int], DFSNode] = {}
        self._connection_pairs: Set[Tuple[str, str]] = set()

    def add_visit(self, element: str, depth: int, parent: Optional[str]) -> Optional[DFSNode]:
        """Add one visit. Returns the new node, or None if it was a duplicate."""
        key = (element, depth, parent)
        if key in self._keys:
            return None
        self._keys.add(key)

        node = DFSNode(
            element=element,
            depth=depth,
            parent=parent,
            id=f"{element}_{depth}_{len(self.nodes)}",
            parents=[parent] if parent is not None else [],
        )
        self.nodes.append(node)
        self._by_position.setdefault((element, depth), node)

        if parent is not None:
            self._connect(parent, node)

        self.current_path = self._path_to(node)
        return node

    def merge_parent(self, element: str, depth: int, parent: str) -> None:
        """Record another parent for an existing (element, depth) node."""
        node = self._by_position.get((element, depth))
        if node is None:
            logger.debug(f"Cannot merge parent {parent} into unknown node {element}@{depth}")
            return
        if parent not in node.parents:
            node.parents.append(parent)
        self._connect(parent, node)

    def _connect(self, parent: str, node: DFSNode) -> None:
        parent_node = self._by_position.get((parent, node.depth - 1))
        if parent_node is None:
            logger.debug(f"No parent node {parent}@{node.depth - 1} for {node.element}")
            return
        pair = (parent_node.id, node.id)
        if pair not in self._connection_pairs:
            self._connection_pairs.add(pair)
            self.connections.append(Connection(parent=parent_node.id, child=node.id))

    def _path_to(self, node: DFSNode) -> List[str]:
        path = [node.id]
        current = node
        while current.parent is not None:
            parent_node = self._by_position.get((current.parent, current.depth - 1))
            if parent_node is None:
                break
            path.append(parent_node.id)
            current = parent_node
        path.reverse()
        return path

    def snapshot(self) -> DFSTrace:
        return DFSTrace(
            nodes=[n.model_copy(deep=True) for n in self.nodes],
            connections=list(self.connections),
            current_path=list(self.current_path),
        )


def replay_visits(visits: Iterable[DFSVisit]) -> DFSTrace:
    """Build a trace from visits streamed by the backend, in arrival order."""
    builder = DFSTraceBuilder()
    for visit in visits:
        builder.add_visit(visit.element, visit.depth, visit.parent)
    return builder.snapshot()


def build_trace(root: Optional[RecipeNode]) -> DFSTrace:
    """
    Reconstruct the depth-first visitation order of a resolved recipe tree.

    Pre-order, root at depth 0. A node already seen at the same depth is not
    emitted again; the new parent is merged into the first node instead and
    its sub-tree is not walked a second time.
    """
    if root is None:
        return DFSTrace()

    visits: List[DFSVisit] = []
    merges: List[Tuple[str, int, str]] = []
    _walk(root, 0, None, visited=set(), seen_positions=set(), visits=visits, merges=merges)

    builder = DFSTraceBuilder()
    for visit in visits:
        builder.add_visit(visit.element, visit.depth, visit.parent)
    for element, depth, parent in merges:
        builder.merge_parent(element, depth, parent)

    # The path tracks the last node in visit order, not the last merge
    trace = builder.snapshot()
    logger.debug(
        f"Built DFS trace for {root.element}: {len(trace.nodes)} nodes, "
        f"{len(trace.connections)} connections, {len(merges)} merged parents"
    )
    return trace


def _walk(
    node: RecipeNode,
    depth: int,
    parent: Optional[str],
    visited: Set[Tuple[str, int, Optional[str]]],
    seen_positions: Set[Tuple[str, int]],
    visits: List[DFSVisit],
    merges: List[Tuple[str, int, str]],
) -> None:
    key = (node.element, depth, parent)
    if key in visited:
        return
    visited.add(key)

    position = (node.element, depth)
    if position in seen_positions:
        if parent is not None:
            merges.append((node.element, depth, parent))
        return
    seen_positions.add(position)

    visits.append(DFSVisit(element=node.element, depth=depth, parent=parent))

    for child in node.recipes:
        # Each branch gets its own copy so an element may reappear down a sibling branch
        _walk(child, depth + 1, node.element, set(visited), seen_positions, visits, merges)
