from craft_viz.recipes.normalizer import normalize_payload, parse_message, parse_tree
from .session import SearchSession, SessionView, StreamSessionController

__all__ = [
    "normalize_payload",
    "parse_message",
    "parse_tree",
    "SearchSession",
    "SessionView",
    "StreamSessionController",
]
