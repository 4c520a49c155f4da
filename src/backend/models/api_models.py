from typing import Any, List, Optional
from pydantic import BaseModel, Field

from craft_viz.models import (
    BidirectionalGraph,
    BidirectionalState,
    DFSTrace,
    Layout,
    Recipe,
    SearchRequest,
)

class PayloadRequest(BaseModel):
    """A raw `path` payload as the search server sent it."""
    path: Any = Field(..., description="Recipe tree, {recipes, recipeCount} envelope, or visited maps")
    index: int = Field(0, ge=0, description="Which recipe to use when the payload holds several")

class ClassifyRequest(PayloadRequest):
    target: str = Field(..., min_length=1, description="Requested target element")

class LayoutRequest(PayloadRequest):
    width: Optional[float] = Field(None, gt=0, description="Viewport width, defaults to the server's")
    height: Optional[float] = Field(None, gt=0, description="Viewport height, defaults to the server's")

class RecipesResponse(BaseModel):
    element: Optional[str] = Field(None, description="Root element of the selected recipe")
    recipe_count: int = Field(..., description="Number of recipes in the payload")
    recipes: List[Recipe]

class ClassifyResponse(BaseModel):
    state: BidirectionalState
    graph: BidirectionalGraph

class TraceResponse(BaseModel):
    trace: DFSTrace
    layout: Layout

class ReplayRequest(BaseModel):
    """A whole recorded stream, replayed through a session."""
    request: SearchRequest
    messages: List[Any] = Field(..., description="Inbound messages in arrival order")
    index: int = Field(0, ge=0, description="Recipe to select after the replay")
