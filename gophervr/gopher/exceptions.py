"""
Custom exceptions for the Gopher transaction client.
"""


class GopherError(Exception):
    """Base exception for all Gopher client errors."""
    pass


class ProtocolError(GopherError):
    """Raised when a response violates the Gopher menu format."""
    pass


class ValidationError(ProtocolError):
    """Raised when a request argument cannot be sent on the wire."""
    pass


class ConnectionError(GopherError):
    """Raised when the server cannot be resolved or connected to."""
    pass


class IoError(ConnectionError):
    """Raised when reading or writing fails mid-transaction."""
    pass


class TimeoutError(ConnectionError):
    """Raised when the caller-supplied deadline expires."""
    pass
