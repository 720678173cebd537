"""
rconsole library exceptions.

This module defines all custom exceptions used throughout the library.
"""


class RConError(Exception):
    """Base exception for RCON protocol errors"""
    pass


class RConTimeoutError(RConError):
    """Raised when a command times out"""
    pass


class RConProtocolError(RConError):
    """Raised when receiving a malformed or unrecognised packet"""
    pass


class RConAuthError(RConError):
    """Raised when the server rejects the password"""
    pass


class RConConnectionError(RConError):
    """Raised when connection to the server fails or is lost"""

    def __init__(self, message: str, refused: bool = False):
        super().__init__(message)
        self.refused = refused


class RConConfigurationError(RConError):
    """Raised when configuration is invalid"""
    pass
