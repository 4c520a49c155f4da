"""
Custom exceptions for the backend application.
"""

class VisualizerBackendException(Exception):
    """Base exception for the application."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class NoRecipeException(VisualizerBackendException):
    """Raised when a payload holds no recipe tree to derive state from."""
    pass

class RecipeIndexException(VisualizerBackendException):
    """Raised when a requested recipe index is outside the payload."""
    pass
