import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from craft_viz import EventBus, SessionEvent
from craft_viz.config import config
from craft_viz.logging_config import setup_logging
from craft_viz.models import SearchAlgorithm, SearchMode, SearchRequest, SessionStatus
from craft_viz.stream import SearchSession, SessionView, StreamSessionController

app = typer.Typer(help="Inspect and visualize element-crafting search results.")
console = Console()
logger = logging.getLogger(__name__)


@app.command()
def search(
    target: str = typer.Argument(..., help="Element to craft."),
    algorithm: SearchAlgorithm = typer.Option(SearchAlgorithm.BFS, "--algorithm", "-a", help="Search algorithm."),
    mode: SearchMode = typer.Option(SearchMode.SHORTEST, "--mode", "-m", help="Shortest recipe or multiple recipes."),
    limit: int = typer.Option(1, "--limit", "-l", min=1, help="Number of recipes in multiple mode."),
    url: Optional[str] = typer.Option(None, "--url", help="Search server base URL (defaults to CRAFT_VIZ_SERVER_URL)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the final session snapshot as JSON."),
    log_level: str = typer.Option(config.log_level, "--log-level", help="Log level."),
    plain: bool = typer.Option(False, "--plain", help="Plain log output instead of rich formatting."),
):
    """
    Run a live search against the search server and print the result.
    """
    setup_logging(level=log_level, use_rich=not plain)
    request = SearchRequest(target=target, algorithm=algorithm, mode=mode, limit=limit)
    session = asyncio.run(run_search_async(request, url))

    _print_view(session.view())
    if output:
        _write_snapshot(session.view(), output)
    if session.status == SessionStatus.FAILED:
        raise typer.Exit(code=1)


async def run_search_async(request: SearchRequest, url: Optional[str] = None) -> SearchSession:
    run_config = config.model_copy(update={"server_url": url}) if url else config
    event_bus = EventBus()

    async def show_status(event: SessionEvent):
        view: SessionView = event.data["view"]
        console.print(f"[dim]{view.status_text}[/dim]")

    event_bus.subscribe_all(show_status)

    controller = StreamSessionController(event_bus, config=run_config)
    await controller.start(request)
    return await controller.wait()


@app.command()
def inspect(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Saved message or `path` payload (JSON)."),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Target element (defaults to the payload's element)."),
    algorithm: SearchAlgorithm = typer.Option(SearchAlgorithm.BFS, "--algorithm", "-a", help="Which view to derive."),
    index: int = typer.Option(0, "--index", "-i", help="Recipe to show when the payload holds several."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the derived state as JSON."),
    log_level: str = typer.Option(config.log_level, "--log-level", help="Log level."),
    plain: bool = typer.Option(False, "--plain", help="Plain log output instead of rich formatting."),
):
    """
    Derive visualization state offline from a saved search result.
    """
    setup_logging(level=log_level, use_rich=not plain)
    data = json.loads(file.read_text(encoding="utf-8"))

    message = data if isinstance(data, dict) and "type" in data else {"type": "result", "path": data}
    target = target or _guess_target(message)
    if not target:
        console.print("[red]Could not determine the target element; pass --target.[/red]")
        raise typer.Exit(code=2)

    session = SearchSession(SearchRequest(target=target, algorithm=algorithm))
    session.mark_connected()
    session.handle_message(message)
    view = session.select_recipe(index) if index else session.view()

    _print_view(view)
    if output:
        _write_snapshot(view, output)


def _guess_target(message: dict) -> Optional[str]:
    path = message.get("path")
    if isinstance(path, dict) and isinstance(path.get("element"), str):
        return path["element"]
    element = message.get("element")
    return element if isinstance(element, str) and element else None


def _print_view(view: SessionView) -> None:
    style = "red" if view.status == SessionStatus.FAILED else "green"
    console.print(f"[{style}]{view.status_text}[/{style}]")

    if view.stats:
        console.print(
            f"Nodes visited: {view.stats.node_count}  Steps: {view.stats.step_count}  "
            f"Time: {view.stats.elapsed_time_ms or 0:.1f} ms"
        )
    if view.tree:
        console.print(f"Recipe tree: {view.tree.count_nodes()} nodes")
    if view.recipe_count > 1:
        console.print(f"Recipe {view.recipe_index + 1} of {view.recipe_count}")

    if view.recipes:
        table = Table(title=f"Recipes for {view.request.target}")
        table.add_column("#", justify="right")
        table.add_column("Result")
        table.add_column("Ingredients")
        for i, recipe in enumerate(view.recipes, start=1):
            table.add_row(str(i), recipe.result, " + ".join(recipe.ingredients))
        console.print(table)

    if view.bidirectional:
        state = view.bidirectional
        console.print(
            f"Forward: {len(state.forward)}  Backward: {len(state.backward)}  "
            f"Meeting points: {', '.join(sorted(state.meeting)) or '-'}"
        )
    if view.trace:
        console.print(f"DFS trace: {len(view.trace.nodes)} nodes, max depth {view.trace.max_depth}")


def _write_snapshot(view: SessionView, output: Path) -> None:
    output.write_text(view.model_dump_json(indent=2), encoding="utf-8")
    console.print(f"Snapshot written to {output}")


if __name__ == "__main__":
    app()
