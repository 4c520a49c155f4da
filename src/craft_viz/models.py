from typing import List, Dict, Any, Optional, Set, Literal, Union, Annotated
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, AliasChoices

# --- Constants ---

BASE_ELEMENTS = ("Water", "Fire", "Earth", "Air")

# --- Enums ---

class SearchAlgorithm(str, Enum):
    """Search strategy run by the backend."""
    BFS = "bfs"
    DFS = "dfs"
    BIDIRECTIONAL = "bidirectional"

class SearchMode(str, Enum):
    SHORTEST = "shortest"
    MULTIPLE = "multiple"

class SessionStatus(Enum):
    """Represents the current status of a search session."""
    IDLE = "idle"
    CONNECTING = "connecting"
    SEARCHING = "searching"
    COMPLETED = "completed"
    NO_RESULTS = "no_results"
    FAILED = "failed"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.NO_RESULTS, SessionStatus.FAILED, SessionStatus.CLOSED)

class NodeGroup(str, Enum):
    """Bidirectional visualization group of an element or a link."""
    FORWARD = "forward"
    BACKWARD = "backward"
    MEETING = "meeting"

# --- Recipe tree ---

class RecipeNode(BaseModel):
    """One crafting result and the ingredient sub-trees that produce it."""
    model_config = ConfigDict(frozen=True)

    element: str = Field(..., min_length=1, description="Element produced at this node")
    recipes: List["RecipeNode"] = Field(default_factory=list, description="Ingredient sub-trees, in recipe order")

    @property
    def is_leaf(self) -> bool:
        return not self.recipes

    def count_nodes(self) -> int:
        return 1 + sum(child.count_nodes() for child in self.recipes)

RecipeNode.model_rebuild()

class Recipe(BaseModel):
    """One row of the flattened recipe listing: result = ingredients."""
    result: str = Field(..., description="Element produced by this recipe")
    ingredients: List[str] = Field(..., description="Ingredients in the originating node's recipe order")

    def __str__(self) -> str:
        return f"{self.result} = {' + '.join(self.ingredients)}"

class VisitedSets(BaseModel):
    """Explicit forward/backward frontiers reported by a bidirectional search."""
    forward: Dict[str, List[str]] = Field(default_factory=dict, description="Element -> ingredients (empty when unknown)")
    backward: Dict[str, List[str]] = Field(default_factory=dict, description="Element -> ingredients (empty when unknown)")
    meeting_points: List[str] = Field(default_factory=list, description="Advisory meeting points sent by the backend")

class RecipeResult(BaseModel):
    """A single recipe as returned by the backend, with its optional explicit visited sets."""
    tree: Optional[RecipeNode] = Field(None, description="Recipe tree, absent for visited-sets-only payloads")
    visited: Optional[VisitedSets] = Field(None, description="Explicit bidirectional data, if the backend sent it")

    @property
    def is_explicit(self) -> bool:
        return self.visited is not None

class RecipePayload(BaseModel):
    """Canonical form of a message `path`, whatever shape the backend used."""
    results: List[RecipeResult] = Field(default_factory=list)
    recipe_count: int = Field(0, ge=0, description="Number of recipes the backend reports")

    @property
    def is_empty(self) -> bool:
        return not self.results

# --- Bidirectional ---

class BidirectionalState(BaseModel):
    """Classified forward/backward/meeting sets for one recipe."""
    forward: Set[str] = Field(default_factory=set)
    backward: Set[str] = Field(default_factory=set)
    meeting: Set[str] = Field(default_factory=set)
    connections: Dict[str, List[str]] = Field(default_factory=dict, description="Element -> ingredients used to produce it")
    explicit: bool = Field(False, description="Whether the sets came from backend-provided visited maps")

    @classmethod
    def empty(cls) -> "BidirectionalState":
        return cls()

class GraphNode(BaseModel):
    id: str
    group: NodeGroup
    is_base: bool = False

class GraphLink(BaseModel):
    source: str = Field(..., description="Ingredient element")
    target: str = Field(..., description="Element produced from the ingredient")
    type: NodeGroup

class BidirectionalGraph(BaseModel):
    """Render-ready graph derived from a BidirectionalState."""
    nodes: List[GraphNode] = Field(default_factory=list)
    links: List[GraphLink] = Field(default_factory=list)

# --- DFS ---

class DFSVisit(BaseModel):
    """A single node visit as reported by the backend (`node` field of a progress message)."""
    element: str = Field(..., min_length=1)
    depth: int = Field(..., ge=0)
    parent: Optional[str] = None

class DFSNode(BaseModel):
    element: str
    depth: int = Field(..., ge=0)
    parent: Optional[str] = Field(None, description="Element of the first parent that reached this node")
    id: str = Field(..., description="Unique id, disambiguates repeated visits")
    parents: List[str] = Field(default_factory=list, description="Every parent element merged into this node")

class Connection(BaseModel):
    parent: str = Field(..., description="DFSNode.id of the parent")
    child: str = Field(..., description="DFSNode.id of the child")

class DFSTrace(BaseModel):
    nodes: List[DFSNode] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    current_path: List[str] = Field(default_factory=list, description="Node ids from the root to the latest node")

    @property
    def max_depth(self) -> int:
        return max((n.depth for n in self.nodes), default=0)

# --- Layout ---

class LayoutPoint(BaseModel):
    """A positioned node, derived and never persisted."""
    id: str
    element: str
    depth: int
    parent: Optional[str] = Field(None, description="Id of the parent point, if any")
    x: float
    y: float

class LayoutLink(BaseModel):
    source: str
    target: str

class Layout(BaseModel):
    points: List[LayoutPoint] = Field(default_factory=list)
    links: List[LayoutLink] = Field(default_factory=list)
    node_radius: float = Field(..., description="Radius the renderer should draw nodes with")

    def point(self, point_id: str) -> Optional[LayoutPoint]:
        return next((p for p in self.points if p.id == point_id), None)

# --- Wire types ---

class SearchRequest(BaseModel):
    """Request sent once per session, right after the channel is established."""
    target: Annotated[str, Field(min_length=1)] = Field(..., description="Element to craft")
    algorithm: SearchAlgorithm = SearchAlgorithm.BFS
    mode: SearchMode = SearchMode.SHORTEST
    limit: int = Field(1, ge=1, description="Number of recipes requested in multiple mode")

class SearchStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    node_count: int = Field(0, validation_alias=AliasChoices("nodeCount", "node_count"))
    step_count: int = Field(0, validation_alias=AliasChoices("stepCount", "step_count"))
    elapsed_time_ms: Optional[float] = Field(
        0.0, validation_alias=AliasChoices("elapsedTimeMs", "elapsedTime", "elapsed_time_ms")
    )

class ProgressMessage(BaseModel):
    type: Literal["progress"]
    element: str = ""
    path: Any = None
    node: Optional[DFSVisit] = None
    stats: SearchStats = Field(default_factory=SearchStats)
    complete: bool = False

class ResultMessage(BaseModel):
    type: Literal["result"]
    element: str = ""
    path: Any = None
    stats: SearchStats = Field(default_factory=SearchStats)
    complete: bool = True

class ErrorMessage(BaseModel):
    type: Literal["error"]
    path: Any = None
    message: Optional[str] = None

    @property
    def error_text(self) -> str:
        if isinstance(self.path, dict) and self.path.get("error"):
            return str(self.path["error"])
        return self.message or "Unknown error"

StreamMessage = Annotated[Union[ProgressMessage, ResultMessage, ErrorMessage], Field(discriminator="type")]
