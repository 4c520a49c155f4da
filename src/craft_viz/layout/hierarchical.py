"""
Hierarchical layout for recipe trees and DFS traces.

Both layouts are deterministic: the same nodes in the same order always get
the same coordinates.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field

from craft_viz.models import DFSNode, DFSTrace, Layout, LayoutLink, LayoutPoint, RecipeNode

logger = logging.getLogger(__name__)


class Margin(BaseModel):
    top: float = 40
    right: float = 40
    bottom: float = 40
    left: float = 40


class LayoutConfig(BaseModel):
    """Spacing configuration shared by the DFS and tree layouts."""
    width: float = Field(800, gt=0, description="Viewport width")
    height: float = Field(600, gt=0, description="Viewport height")

    # DFS timeline
    dfs_margin: Margin = Field(default_factory=Margin)
    dfs_node_radius: float = 20
    dfs_spacing_factor: float = Field(3, description="Minimum spacing as a multiple of the node radius")

    # Recipe tree
    tree_margin: Margin = Field(default_factory=lambda: Margin(top=50, right=120, bottom=50, left=120))
    max_node_spacing: float = 180
    min_node_spacing: float = 120
    spacing_decay: float = Field(0.5, description="Spacing lost per node in the tree")
    max_node_radius: float = 30
    min_node_radius: float = 20
    radius_decay: float = Field(0.05, description="Radius lost per node in the tree")
    level_gap_factor: float = Field(1.5, description="Distance between depth levels as a multiple of node spacing")
    sibling_separation: float = 1.0
    cousin_separation: float = 1.5
    fit_scale: float = Field(0.8, gt=0, description="Zoom applied when centering the tree")

    def resized(self, width: float, height: float) -> "LayoutConfig":
        return self.model_copy(update={"width": width, "height": height})

    def tree_spacing(self, node_count: int) -> float:
        return max(self.min_node_spacing, self.max_node_spacing - node_count * self.spacing_decay)

    def tree_radius(self, node_count: int) -> float:
        return max(self.min_node_radius, self.max_node_radius - node_count * self.radius_decay)


def layout(
    nodes: Union[RecipeNode, DFSTrace, Sequence[DFSNode]],
    config: Optional[LayoutConfig] = None,
) -> Layout:
    """Lay out either a recipe tree or a DFS trace."""
    config = config or LayoutConfig()
    if isinstance(nodes, RecipeNode):
        return layout_tree(nodes, config)
    if isinstance(nodes, DFSTrace):
        return layout_dfs(nodes.nodes, config, nodes.connections)
    return layout_dfs(list(nodes), config)


# --- DFS timeline ---

def layout_dfs(nodes: Sequence[DFSNode], config: Optional[LayoutConfig] = None, connections=None) -> Layout:
    """
    Spread DFS nodes by depth level.

    Each level is centered and spread over the larger of the inner width and
    the width its nodes need at minimum spacing; y is proportional to depth.
    """
    config = config or LayoutConfig()
    if not nodes:
        return Layout(node_radius=config.dfs_node_radius)

    margin = config.dfs_margin
    inner_width = config.width - margin.left - margin.right
    inner_height = config.height - margin.top - margin.bottom
    min_spacing = config.dfs_node_radius * config.dfs_spacing_factor

    by_depth: Dict[int, List[DFSNode]] = {}
    index_in_level: Dict[str, int] = {}
    for node in nodes:
        level = by_depth.setdefault(node.depth, [])
        index_in_level[node.id] = len(level)
        level.append(node)
    max_depth = max(by_depth)

    points: List[LayoutPoint] = []
    for node in nodes:
        count = len(by_depth[node.depth])
        index = index_in_level[node.id]

        if count == 1:
            x = inner_width / 2
        else:
            available = max(inner_width, count * min_spacing)
            spacing = max(min_spacing, available / count)
            x = index * spacing + spacing / 2 - available / 2 + inner_width / 2

        y = (node.depth / max(max_depth, 1)) * inner_height
        points.append(LayoutPoint(
            id=node.id,
            element=node.element,
            depth=node.depth,
            parent=_parent_id(node, by_depth),
            x=x + margin.left,
            y=y + margin.top,
        ))

    ids = {p.id for p in points}
    links = [
        LayoutLink(source=c.parent, target=c.child)
        for c in (connections or [])
        if c.parent in ids and c.child in ids
    ]
    return Layout(points=points, links=links, node_radius=config.dfs_node_radius)


def _parent_id(node: DFSNode, by_depth: Dict[int, List[DFSNode]]) -> Optional[str]:
    if node.parent is None:
        return None
    for candidate in by_depth.get(node.depth - 1, []):
        if candidate.element == node.parent:
            return candidate.id
    return None


# --- Recipe tree ---

@dataclass(eq=False)
class _TreeNode:
    id: str
    element: str
    depth: int
    parent: Optional["_TreeNode"] = field(repr=False)
    children: List["_TreeNode"] = field(default_factory=list)
    offset: float = 0.0  # relative to parent
    breadth: float = 0.0  # absolute, after second pass


def layout_tree(root: RecipeNode, config: Optional[LayoutConfig] = None) -> Layout:
    """
    Tidy horizontal tree layout.

    Depth runs left to right. Node spacing and radius shrink as the tree
    grows, neighbouring subtrees with different parents are pushed further
    apart than siblings, and the result is centered in the viewport using the
    bounding box of all nodes.
    """
    config = config or LayoutConfig()
    tree, ordered = _build(root)
    count = len(ordered)

    spacing = config.tree_spacing(count)
    radius = config.tree_radius(count)
    level_gap = spacing * config.level_gap_factor

    _place(tree, spacing, config)
    _absolute(tree)

    raw = [(n, n.depth * level_gap, n.breadth) for n in ordered]
    min_x = min(x for _, x, _ in raw)
    max_x = max(x for _, x, _ in raw)
    min_y = min(y for _, _, y in raw)
    max_y = max(y for _, _, y in raw)
    center_x = (min_x + max_x) / 2
    center_y = (min_y + max_y) / 2

    margin = config.tree_margin
    anchor_x = margin.left + (config.width - margin.left - margin.right) / 2
    anchor_y = margin.top + (config.height - margin.top - margin.bottom) / 2
    scale = config.fit_scale
    points = [
        LayoutPoint(
            id=n.id,
            element=n.element,
            depth=n.depth,
            parent=n.parent.id if n.parent else None,
            x=anchor_x + (x - center_x) * scale,
            y=anchor_y + (y - center_y) * scale,
        )
        for n, x, y in raw
    ]
    links = [LayoutLink(source=n.parent.id, target=n.id) for n in ordered if n.parent]

    logger.debug(f"Tree layout for {root.element}: {count} nodes, spacing={spacing:.1f}, radius={radius:.1f}")
    return Layout(points=points, links=links, node_radius=radius * scale)


def _build(root: RecipeNode) -> Tuple[_TreeNode, List[_TreeNode]]:
    """Copy the recipe tree into mutable layout nodes with path ids ("0", "0.1", ...)."""
    ordered: List[_TreeNode] = []

    def visit(node: RecipeNode, node_id: str, depth: int, parent: Optional[_TreeNode]) -> _TreeNode:
        tnode = _TreeNode(id=node_id, element=node.element, depth=depth, parent=parent)
        ordered.append(tnode)
        tnode.children = [
            visit(child, f"{node_id}.{i}", depth + 1, tnode)
            for i, child in enumerate(node.recipes)
        ]
        return tnode

    return visit(root, "0", 0, None), ordered


Contour = Dict[int, Tuple[float, float]]


def _place(node: _TreeNode, spacing: float, config: LayoutConfig) -> Contour:
    """
    Post-order placement. Returns the subtree contour: depth -> (min, max)
    breadth relative to `node`.
    """
    if not node.children:
        return {node.depth: (0.0, 0.0)}

    merged: Contour = {}
    offsets: List[float] = []
    for child in node.children:
        contour = _place(child, spacing, config)
        shift = 0.0
        if offsets:
            for depth, (low, _) in contour.items():
                if depth in merged:
                    gap = config.sibling_separation if depth == child.depth else config.cousin_separation
                    shift = max(shift, merged[depth][1] - low + gap * spacing)
        offsets.append(shift)
        for depth, (low, high) in contour.items():
            if depth in merged:
                merged[depth] = (min(merged[depth][0], low + shift), max(merged[depth][1], high + shift))
            else:
                merged[depth] = (low + shift, high + shift)

    # Center the parent over its first and last child
    middle = (offsets[0] + offsets[-1]) / 2
    for child, offset in zip(node.children, offsets):
        child.offset = offset - middle

    contour = {depth: (low - middle, high - middle) for depth, (low, high) in merged.items()}
    contour[node.depth] = (0.0, 0.0)
    return contour


def _absolute(root: _TreeNode) -> None:
    stack = [root]
    while stack:
        node = stack.pop()
        node.breadth = (node.parent.breadth if node.parent else 0.0) + node.offset
        stack.extend(node.children)
