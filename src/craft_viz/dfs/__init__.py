from .trace import DFSTraceBuilder, build_trace, replay_visits

__all__ = ["DFSTraceBuilder", "build_trace", "replay_visits"]
