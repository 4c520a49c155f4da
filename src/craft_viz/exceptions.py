"""
Custom exceptions for the craft_viz library.
"""

class CraftVizException(Exception):
    """Base exception for the library."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class MalformedPayloadError(CraftVizException):
    """Raised when an inbound message cannot be interpreted at all."""
    pass

class TransportError(CraftVizException):
    """Raised when the search server connection fails or closes abruptly."""
    pass
