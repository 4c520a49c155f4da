from fastapi import APIRouter, Depends, HTTPException
from typing import Annotated
import logging

from craft_viz.bidirectional import build_graph, classify
from craft_viz.dfs import build_trace
from craft_viz.layout import LayoutConfig, layout_dfs, layout_tree
from craft_viz.models import Layout, RecipeResult
from craft_viz.recipes import extract_recipes
from craft_viz.stream import SearchSession, SessionView, normalize_payload
from backend.dependencies import get_layout_config
from backend.exceptions import NoRecipeException, RecipeIndexException
from backend.models.api_models import (
    ClassifyRequest,
    ClassifyResponse,
    LayoutRequest,
    PayloadRequest,
    RecipesResponse,
    ReplayRequest,
    TraceResponse,
)

router = APIRouter(prefix="/api/visualize", tags=["visualize"])
logger = logging.getLogger(__name__)

LayoutConfigDep = Annotated[LayoutConfig, Depends(get_layout_config)]


def _select(request: PayloadRequest) -> RecipeResult:
    payload = normalize_payload(request.path)
    if payload.is_empty:
        raise NoRecipeException("Payload contains no recipes")
    if request.index >= len(payload.results):
        raise RecipeIndexException(
            f"Recipe index {request.index} out of range ({len(payload.results)} recipes)"
        )
    return payload.results[request.index]


def _sized(config: LayoutConfig, request: LayoutRequest) -> LayoutConfig:
    return config.resized(request.width or config.width, request.height or config.height)


@router.post("/recipes", response_model=RecipesResponse)
async def recipes(request: PayloadRequest) -> RecipesResponse:
    """
    Flatten a recipe payload into bottom-up recipe statements.

    An empty payload is not an error: it yields an empty list.
    """
    payload = normalize_payload(request.path)
    if payload.is_empty:
        return RecipesResponse(recipe_count=0, recipes=[])
    try:
        result = _select(request)
    except RecipeIndexException as e:
        raise HTTPException(status_code=404, detail=e.message)
    return RecipesResponse(
        element=result.tree.element if result.tree else None,
        recipe_count=payload.recipe_count,
        recipes=extract_recipes(result.tree),
    )


@router.post("/bidirectional", response_model=ClassifyResponse)
async def bidirectional(request: ClassifyRequest) -> ClassifyResponse:
    """Classify a payload into forward, backward and meeting sets."""
    payload = normalize_payload(request.path)
    if payload.is_empty:
        state = classify(None, request.target)
        return ClassifyResponse(state=state, graph=build_graph(state))
    try:
        result = _select(request)
    except RecipeIndexException as e:
        raise HTTPException(status_code=404, detail=e.message)

    state = classify(result, request.target)
    logger.info(
        f"Classified {request.target}: {len(state.forward)} forward, "
        f"{len(state.backward)} backward, {len(state.meeting)} meeting"
    )
    return ClassifyResponse(state=state, graph=build_graph(state))


@router.post("/dfs", response_model=TraceResponse)
async def dfs(request: LayoutRequest, layout_config: LayoutConfigDep) -> TraceResponse:
    """Reconstruct and lay out the DFS visitation order of a recipe tree."""
    try:
        result = _select(request)
        if result.tree is None:
            raise NoRecipeException("Selected recipe has no tree")
    except NoRecipeException as e:
        raise HTTPException(status_code=422, detail=e.message)
    except RecipeIndexException as e:
        raise HTTPException(status_code=404, detail=e.message)

    trace = build_trace(result.tree)
    return TraceResponse(trace=trace, layout=layout_dfs(trace.nodes, _sized(layout_config, request), trace.connections))


@router.post("/tree", response_model=Layout)
async def tree(request: LayoutRequest, layout_config: LayoutConfigDep) -> Layout:
    """Lay out a recipe tree hierarchically."""
    try:
        result = _select(request)
        if result.tree is None:
            raise NoRecipeException("Selected recipe has no tree")
    except NoRecipeException as e:
        raise HTTPException(status_code=422, detail=e.message)
    except RecipeIndexException as e:
        raise HTTPException(status_code=404, detail=e.message)

    return layout_tree(result.tree, _sized(layout_config, request))


@router.post("/replay", response_model=SessionView)
async def replay(request: ReplayRequest, layout_config: LayoutConfigDep) -> SessionView:
    """
    Replay a recorded message stream through a fresh session.

    Useful for rendering a saved search without a live search server.
    """
    session = SearchSession(request.request, layout_config=layout_config)
    session.mark_connected()
    for message in request.messages:
        session.handle_message(message)
    if request.index:
        return session.select_recipe(request.index)
    return session.view()
