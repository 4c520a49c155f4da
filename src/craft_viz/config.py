import os
from typing import List
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from craft_viz.models import BASE_ELEMENTS

load_dotenv()

class VisualizerConfig(BaseModel):
    """Configuration for the search stream client and derived-state defaults."""

    # Search server
    server_url: str = "ws://localhost:8080"
    ws_path: str = "/ws"
    connect_timeout_s: float = 10.0

    # Viewport used for layout when the renderer has not reported one
    viewport_width: int = 800
    viewport_height: int = 600

    # Staggered reveal delay, advisory only
    animation_delay_ms: int = 100

    log_level: str = "INFO"
    base_elements: List[str] = Field(default_factory=lambda: list(BASE_ELEMENTS))

    @property
    def websocket_url(self) -> str:
        return f"{self.server_url.rstrip('/')}{self.ws_path}"

    @classmethod
    def from_env(cls) -> "VisualizerConfig":
        """Create config from environment variables."""
        return cls(
            server_url=os.getenv("CRAFT_VIZ_SERVER_URL", "ws://localhost:8080"),
            ws_path=os.getenv("CRAFT_VIZ_WS_PATH", "/ws"),
            connect_timeout_s=float(os.getenv("CRAFT_VIZ_CONNECT_TIMEOUT", "10")),
            viewport_width=int(os.getenv("CRAFT_VIZ_VIEWPORT_WIDTH", "800")),
            viewport_height=int(os.getenv("CRAFT_VIZ_VIEWPORT_HEIGHT", "600")),
            animation_delay_ms=int(os.getenv("CRAFT_VIZ_ANIMATION_DELAY_MS", "100")),
            log_level=os.getenv("CRAFT_VIZ_LOG_LEVEL", "INFO"),
        )

# Global config instance
config = VisualizerConfig.from_env()
