"""
Pytest configuration and shared fixtures.
"""

import pytest
import logging
from typing import Any, Dict

from craft_viz import EventBus
from craft_viz.layout import LayoutConfig
from craft_viz.models import RecipeNode, SearchAlgorithm, SearchMode, SearchRequest

# Configure logging for tests
logging.basicConfig(level=logging.INFO)


def leaf(element: str) -> Dict[str, Any]:
    return {"element": element, "recipes": []}


@pytest.fixture
def event_bus() -> EventBus:
    """Create a fresh EventBus for each test."""
    return EventBus()

@pytest.fixture
def layout_config() -> LayoutConfig:
    return LayoutConfig(width=800, height=600)

@pytest.fixture
def mud_tree_raw() -> Dict[str, Any]:
    """Mud = Water + Earth."""
    return {"element": "Mud", "recipes": [leaf("Water"), leaf("Earth")]}

@pytest.fixture
def mud_tree(mud_tree_raw) -> RecipeNode:
    return RecipeNode.model_validate(mud_tree_raw)

@pytest.fixture
def brick_tree_raw() -> Dict[str, Any]:
    """
    Wall = House + Tower, where both House and Tower are made from Brick (+ something).

    Brick appears at depth 2 under two different depth-1 parents and has the
    same sub-recipe (Mud + Fire) in both places.
    """
    brick = {
        "element": "Brick",
        "recipes": [
            {"element": "Mud", "recipes": [leaf("Water"), leaf("Earth")]},
            leaf("Fire"),
        ],
    }
    return {
        "element": "Wall",
        "recipes": [
            {"element": "House", "recipes": [brick, leaf("Air")]},
            {"element": "Tower", "recipes": [brick, leaf("Earth")]},
        ],
    }

@pytest.fixture
def brick_tree(brick_tree_raw) -> RecipeNode:
    return RecipeNode.model_validate(brick_tree_raw)

@pytest.fixture
def bfs_request() -> SearchRequest:
    return SearchRequest(target="Mud", algorithm=SearchAlgorithm.BFS, mode=SearchMode.SHORTEST, limit=1)

@pytest.fixture
def stats() -> Dict[str, Any]:
    return {"nodeCount": 12, "stepCount": 4, "elapsedTimeMs": 3.5}
