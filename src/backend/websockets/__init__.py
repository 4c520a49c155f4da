from .relay import VisualizationRelay

__all__ = ["VisualizationRelay"]
