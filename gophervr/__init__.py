"""
GopherVR Gopher Client

An implementation of the Gopher protocol (RFC 1436) client transaction,
with session recording, a terminal browser and TUI session replay.
"""

__version__ = "1.0.0"
__description__ = "Gopher (RFC 1436) transaction client with terminal browser"
