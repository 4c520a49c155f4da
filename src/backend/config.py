import os
from pydantic import BaseModel

from craft_viz.config import config as visualizer_config

class BackendConfig(BaseModel):
    """Configuration for the FastAPI backend."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # CORS settings
    cors_origins: list = ["http://localhost:3000", "http://localhost:5173"]  # React dev servers

    # Upstream search server the relay connects to
    search_server_url: str = visualizer_config.server_url

    @classmethod
    def from_env(cls) -> "BackendConfig":
        """Create config from environment variables."""
        return cls(
            host=os.getenv("BACKEND_HOST", "0.0.0.0"),
            port=int(os.getenv("BACKEND_PORT", "8000")),
            debug=os.getenv("BACKEND_DEBUG", "false").lower() == "true",
            cors_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(","),
            search_server_url=os.getenv("CRAFT_VIZ_SERVER_URL", visualizer_config.server_url),
        )

# Global config instance
config = BackendConfig.from_env()
