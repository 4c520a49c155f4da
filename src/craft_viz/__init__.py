"""
craft_viz - Core Library

Interprets element-crafting search results streamed by a search server and
turns them into render-ready state: recipe listings, bidirectional
classification, DFS traces and hierarchical layouts.
"""

from .events import EventBus, SessionEvent

__all__ = ['EventBus', 'SessionEvent']
