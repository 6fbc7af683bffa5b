"""
Gopher protocol (RFC 1436) implementation.

This module handles request encoding, submenu parsing and formatting, and the
interpretation of raw responses according to the requested item type.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Optional, Tuple, Union
from urllib.parse import quote, unquote, urlsplit

from .exceptions import ProtocolError, ValidationError


DEFAULT_PORT = 70
CRLF = b"\r\n"
TAB = "\t"
MENU_TERMINATOR = "."

# Characters that delimit frames and fields on the wire
FORBIDDEN_SELECTOR_CHARS = ("\t", "\n", "\r")


class GopherItemType(str, Enum):
    """Item-type tags from RFC 1436 plus common extensions."""

    TEXT_FILE = "0"
    SUBMENU = "1"
    CCSO_NAMESERVER = "2"
    ERROR = "3"
    BINHEX_FILE = "4"
    DOS_FILE = "5"
    UUENCODED_FILE = "6"
    FULL_TEXT_SEARCH = "7"
    TELNET = "8"
    BINARY_FILE = "9"
    MIRROR = "+"
    GIF_FILE = "g"
    IMAGE_FILE = "I"
    TELNET_3270 = "T"

    # Gopher+ and unofficial types
    BITMAP_IMAGE = ":"
    MOVIE_FILE = ";"
    SOUND_FILE = "<"
    DOC = "d"
    HTML = "h"
    INFORMATIONAL_MESSAGE = "i"
    PNG_IMAGE = "p"
    RTF_DOCUMENT = "r"
    WAV_SOUND = "s"
    PDF_DOCUMENT = "P"
    XML_DOCUMENT = "X"

    def __str__(self) -> str:
        return self.value


# A tag outside the table above is kept as its raw one-character string
ItemType = Union[GopherItemType, str]

_TAGS = {member.value: member for member in GopherItemType}


def coerce_item_type(tag: ItemType) -> ItemType:
    """
    Map a one-character tag to its GopherItemType member.

    Args:
        tag: Item-type character or enum member

    Returns:
        The matching GopherItemType, or the tag itself if unrecognized

    Raises:
        ValidationError: If the tag is not exactly one character
    """
    if isinstance(tag, GopherItemType):
        return tag
    if not isinstance(tag, str) or len(tag) != 1:
        raise ValidationError(f"Item type must be a single character, got {tag!r}")
    return _TAGS.get(tag, tag)


def get_type_name(tag: ItemType) -> str:
    """Get human-readable item-type name."""
    item_type = _TAGS.get(str(tag))
    if item_type is None:
        return f"UNKNOWN_{tag!r}"
    return item_type.name


@dataclass(frozen=True)
class GopherLine:
    """One entry of a parsed submenu."""

    type: ItemType
    display_string: str
    selector: str
    hostname: str
    port: int

    @property
    def url(self) -> "GopherURL":
        """The location this entry points at."""
        return GopherURL(self.hostname, self.port, self.type, self.selector)


@dataclass(frozen=True)
class MenuResult:
    """Submenu response: parsed lines in server order."""

    lines: Tuple[GopherLine, ...] = ()

    def __iter__(self) -> Iterator[GopherLine]:
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)


@dataclass(frozen=True)
class TextResult:
    """Text file or error response, decoded as UTF-8."""

    text: str


@dataclass(frozen=True)
class BinaryResult:
    """Any other response, returned verbatim."""

    data: bytes = field(repr=False)

    def __len__(self) -> int:
        return len(self.data)


TransactionResult = Union[MenuResult, TextResult, BinaryResult]


@dataclass(frozen=True)
class GopherURL:
    """
    A gopher:// location.

    Format:
    gopher://HOST[:PORT]/TYPE SELECTOR [%09 QUERY]
    """

    hostname: str
    port: int = DEFAULT_PORT
    item_type: ItemType = GopherItemType.SUBMENU
    selector: str = ""
    query: Optional[str] = None

    @property
    def response_type(self) -> ItemType:
        """The type the response must be interpreted as."""
        # Search servers answer with a menu
        if self.item_type == GopherItemType.FULL_TEXT_SEARCH:
            return GopherItemType.SUBMENU
        return self.item_type

    def __str__(self) -> str:
        netloc = self.hostname
        if ":" in netloc:
            netloc = f"[{netloc}]"
        if self.port != DEFAULT_PORT:
            netloc = f"{netloc}:{self.port}"
        path = quote(self.selector, safe="/:@!$&'()*+,;=~")
        if self.query is not None:
            path += "%09" + quote(self.query, safe="")
        return f"gopher://{netloc}/{self.item_type}{path}"


def parse_gopher_url(url: str) -> GopherURL:
    """
    Parse a gopher:// URL.

    Args:
        url: URL such as gopher://example.org/0/about.txt

    Returns:
        GopherURL: The parsed location

    Raises:
        ValidationError: If the URL is not a well-formed gopher URL
    """
    if not url.lower().startswith("gopher://"):
        raise ValidationError(f"URL must start with gopher://, got {url!r}")

    body = url[len("gopher://"):]
    netloc, _, path = body.partition("/")

    # urlsplit only handles the authority part; selectors may contain ? and #
    try:
        authority = urlsplit(f"gopher://{netloc}")
        hostname = authority.hostname
        port = authority.port or DEFAULT_PORT
    except ValueError as e:
        raise ValidationError(f"Invalid gopher URL {url!r}: {e}") from e

    if not hostname:
        raise ValidationError(f"Gopher URL has no host: {url!r}")

    if not path:
        return GopherURL(hostname, port)

    item_type = coerce_item_type(path[0])
    fields = unquote(path[1:]).split(TAB)
    selector = fields[0]
    # A third field would be a Gopher+ string, which is ignored
    query = fields[1] if len(fields) > 1 else None

    return GopherURL(hostname, port, item_type, selector, query)


def validate_selector(selector: str, what: str = "selector") -> None:
    """
    Ensure a selector can be framed on the wire.

    Raises:
        ValidationError: If the selector contains TAB, LF or CR
    """
    for char in FORBIDDEN_SELECTOR_CHARS:
        if char in selector:
            raise ValidationError(
                f"Invalid character {char!r} in {what} {selector!r}"
            )


def validate_port(port: int) -> None:
    """
    Ensure a port fits in an unsigned 16-bit integer.

    Raises:
        ValidationError: If the port is out of range
    """
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF:
        raise ValidationError(f"Port must be an integer in 0..65535, got {port!r}")


def encode_request(selector: str, query: Optional[str] = None) -> bytes:
    """
    Encode a request line.

    Args:
        selector: Selector to request; may be empty for the root menu
        query: Search terms for full-text search servers

    Returns:
        bytes: SELECTOR [TAB QUERY] CR LF, UTF-8 encoded

    Raises:
        ValidationError: If the selector or query contains TAB, LF or CR
    """
    validate_selector(selector)
    line = selector
    if query is not None:
        validate_selector(query, "query")
        line = f"{selector}{TAB}{query}"
    return line.encode("utf-8") + CRLF


def decode_text(data: bytes) -> str:
    """Decode a response body, replacing invalid UTF-8 sequences."""
    return data.decode("utf-8", errors="replace")


def _parse_port(value: str, raw_line: str) -> int:
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        raise ProtocolError(f"Non-numeric port {value!r} in menu line {raw_line!r}")
    port = int(value)
    if port > 0xFFFF:
        raise ProtocolError(f"Port {port} out of range in menu line {raw_line!r}")
    return port


def parse_menu_line(raw_line: str, hostname: str, port: int) -> GopherLine:
    """
    Parse a single submenu line.

    Empty selector, hostname and port fields keep their defaults. The
    defaults come from the request that produced the menu.

    Args:
        raw_line: Line without its line terminator
        hostname: Host of the request
        port: Port of the request

    Returns:
        GopherLine: The parsed entry

    Raises:
        ProtocolError: If the type tag is missing or the port is not numeric
    """
    fields = raw_line.split(TAB)

    head = fields[0]
    if not head:
        raise ProtocolError(f"Menu line has no item type: {raw_line!r}")

    selector = fields[1] if len(fields) > 1 else ""
    if len(fields) > 2 and fields[2]:
        hostname = fields[2]
    if len(fields) > 3 and fields[3].strip():
        port = _parse_port(fields[3], raw_line)

    return GopherLine(
        type=coerce_item_type(head[0]),
        display_string=head[1:],
        selector=selector,
        hostname=hostname,
        port=port,
    )


def parse_menu(text: str, hostname: str, port: int) -> Tuple[GopherLine, ...]:
    """
    Parse a submenu body into its lines.

    Parsing stops at a line consisting solely of "."; a body that ends
    without the terminator is accepted as well.

    Raises:
        ProtocolError: If any line is malformed
    """
    raw_lines = text.split("\n")
    if raw_lines and raw_lines[-1] == "":
        raw_lines.pop()

    lines = []
    for raw_line in raw_lines:
        if raw_line.endswith("\r"):
            raw_line = raw_line[:-1]
        if raw_line == MENU_TERMINATOR:
            break
        lines.append(parse_menu_line(raw_line, hostname, port))
    return tuple(lines)


def format_menu_line(line: GopherLine) -> str:
    """
    Serialize a GopherLine in wire format, without terminator.

    Raises:
        ValidationError: If a field would not parse back unchanged
    """
    if not isinstance(line.type, str) or len(str(line.type)) != 1:
        raise ValidationError(f"Item type must be a single character, got {line.type!r}")
    validate_selector(str(line.type), "item type")
    validate_selector(line.display_string, "display string")
    validate_selector(line.selector, "selector")
    validate_selector(line.hostname, "hostname")
    if not line.hostname:
        raise ValidationError("Menu line hostname must not be empty")
    validate_port(line.port)
    return TAB.join([
        f"{line.type}{line.display_string}",
        line.selector,
        line.hostname,
        str(line.port),
    ])


def format_menu(lines: Iterable[GopherLine]) -> str:
    """Serialize a complete submenu, including the "." terminator."""
    body = "".join(f"{format_menu_line(line)}\r\n" for line in lines)
    return f"{body}{MENU_TERMINATOR}\r\n"


def interpret_response(
    data: bytes,
    requested_type: ItemType,
    hostname: str,
    port: int,
) -> TransactionResult:
    """
    Interpret a fully buffered response.

    Args:
        data: Everything the server sent before closing
        requested_type: Item type the request was made for
        hostname: Host of the request, default for menu lines
        port: Port of the request, default for menu lines

    Returns:
        TransactionResult: MenuResult, TextResult or BinaryResult

    Raises:
        ProtocolError: If a submenu line is malformed
    """
    if requested_type == GopherItemType.SUBMENU:
        return MenuResult(parse_menu(decode_text(data), hostname, port))
    if requested_type in (GopherItemType.TEXT_FILE, GopherItemType.ERROR):
        return TextResult(decode_text(data))
    return BinaryResult(data)
