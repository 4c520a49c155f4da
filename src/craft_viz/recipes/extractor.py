"""
Flattens a recipe tree into an ordered "result = ingredients" listing.
"""

import logging
from typing import List, Optional, Set

from craft_viz.models import RecipeNode, Recipe

logger = logging.getLogger(__name__)


def extract_recipes(root: Optional[RecipeNode]) -> List[Recipe]:
    """
    Extract recipes bottom-up from a recipe tree.

    Ingredients are always listed before the recipes that consume them, and
    each element is listed as a result at most once (first bottom-up
    occurrence wins). Leaves contribute nothing.
    """
    if root is None:
        return []

    recipes: List[Recipe] = []
    _collect(root, visited=set(), out=recipes)
    logger.debug(f"Extracted {len(recipes)} recipes for {root.element}")
    return recipes


def _collect(node: RecipeNode, visited: Set[str], out: List[Recipe]) -> None:
    if node.is_leaf:
        return

    for child in node.recipes:
        _collect(child, visited, out)

    if node.element not in visited:
        visited.add(node.element)
        out.append(Recipe(
            result=node.element,
            ingredients=[child.element for child in node.recipes],
        ))
