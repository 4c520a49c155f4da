from fastapi import Request

from craft_viz.layout import LayoutConfig

async def get_layout_config(request: Request) -> LayoutConfig:
    """Dependency provider to get the shared default LayoutConfig."""
    return request.app.state.layout_config
