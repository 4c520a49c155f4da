from .classifier import build_graph, classify, find_path_to_target

__all__ = ["build_graph", "classify", "find_path_to_target"]
