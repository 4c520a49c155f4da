from .hierarchical import LayoutConfig, Margin, layout, layout_dfs, layout_tree

__all__ = ["LayoutConfig", "Margin", "layout", "layout_dfs", "layout_tree"]
