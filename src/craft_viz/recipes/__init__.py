from .extractor import extract_recipes
from .normalizer import normalize_payload, parse_message, parse_tree, read_visited

__all__ = ["extract_recipes", "normalize_payload", "parse_message", "parse_tree", "read_visited"]
