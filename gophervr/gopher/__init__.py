"""Gopher protocol client."""

from .client import GopherClient, TransactionState, transact, transact_async
from .exceptions import (
    ConnectionError, GopherError, IoError, ProtocolError, TimeoutError, ValidationError
)
from .protocol import (
    BinaryResult, GopherItemType, GopherLine, GopherURL, MenuResult, TextResult,
    TransactionResult, format_menu, format_menu_line, parse_gopher_url, parse_menu,
)

__all__ = [
    "GopherClient", "TransactionState", "transact", "transact_async",
    "GopherError", "ProtocolError", "ValidationError", "ConnectionError", "IoError", "TimeoutError",
    "GopherItemType", "GopherLine", "GopherURL", "MenuResult", "TextResult", "BinaryResult",
    "TransactionResult", "format_menu", "format_menu_line", "parse_gopher_url", "parse_menu",
]
