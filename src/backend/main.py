import logging
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import config
from backend.api.visualize import router as visualize_router
from backend.api.stream import router as stream_router
from backend.websockets.relay import VisualizationRelay
from craft_viz.config import config as visualizer_config
from craft_viz.layout import LayoutConfig

# Configure unified logging to match craft_viz style
from craft_viz.logging_config import setup_logging
setup_logging(level="INFO")

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logger.info("Starting Craft Visualizer API...")

    layout_config = LayoutConfig(
        width=visualizer_config.viewport_width,
        height=visualizer_config.viewport_height,
    )
    relay = VisualizationRelay(
        config=visualizer_config.model_copy(update={"server_url": config.search_server_url}),
        layout_config=layout_config,
    )
    logger.info(f"Relay will connect to search server at {config.search_server_url}")

    app.state.layout_config = layout_config
    app.state.relay = relay

    logger.info("Craft Visualizer API startup complete")

    yield

    logger.info("Shutting down Craft Visualizer API...")
    for websocket in list(relay.controllers):
        await relay.disconnect(websocket)
    logger.info("Craft Visualizer API shutdown complete")

app = FastAPI(
    title="Craft Visualizer API",
    description="Derived visualization state for element-crafting search results",
    version="0.1.0",
    debug=config.debug,
    lifespan=lifespan
)

# Routers and Middleware
app.include_router(visualize_router)
app.include_router(stream_router)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Craft Visualizer API",
        "version": "0.1.0",
        "features": [
            "Recipe extraction",
            "Bidirectional classification",
            "DFS trace reconstruction",
            "Hierarchical layout",
            "Live search relay over WebSocket",
        ],
        "docs": "/docs",
        "health": "/health",
        "websocket_example": f"ws://localhost:{config.port}/ws/visualize",
    }

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "craft-visualizer-api",
        "version": "0.1.0",
        "connections": app.state.relay.get_connection_count() if hasattr(app.state, "relay") else 0,
    }

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logging.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )

if __name__ == "__main__":
    uvicorn.run(
        "backend.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="info"
    )
