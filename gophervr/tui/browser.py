"""
Terminal Gopher Browser

This module renders transaction results with rich and provides an
interactive browser that turns menu lines into follow-up transactions.
"""

import logging
from typing import Callable, List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..gopher.client import GopherClient
from ..gopher.exceptions import GopherError
from ..gopher.protocol import (
    BinaryResult, GopherItemType, GopherLine, GopherURL, MenuResult, TextResult,
    TransactionResult, get_type_name,
)


HEX_PREVIEW_BYTES = 64

# Menu lines that carry no location worth following
NON_SELECTABLE_TYPES = (GopherItemType.INFORMATIONAL_MESSAGE, GopherItemType.ERROR)
UNSUPPORTED_TYPES = (GopherItemType.TELNET, GopherItemType.TELNET_3270, GopherItemType.CCSO_NAMESERVER)

TYPE_LABELS = {
    GopherItemType.TEXT_FILE: "TEXT",
    GopherItemType.SUBMENU: "DIR",
    GopherItemType.FULL_TEXT_SEARCH: "SEARCH",
    GopherItemType.BINARY_FILE: "BIN",
    GopherItemType.GIF_FILE: "GIF",
    GopherItemType.IMAGE_FILE: "IMAGE",
    GopherItemType.PNG_IMAGE: "PNG",
    GopherItemType.HTML: "HTML",
    GopherItemType.SOUND_FILE: "SOUND",
    GopherItemType.WAV_SOUND: "SOUND",
    GopherItemType.MOVIE_FILE: "VIDEO",
    GopherItemType.DOC: "DOC",
    GopherItemType.PDF_DOCUMENT: "PDF",
    GopherItemType.TELNET: "TELNET",
    GopherItemType.ERROR: "ERROR",
}


def type_label(tag) -> str:
    """Short label shown next to a menu line."""
    if tag == GopherItemType.INFORMATIONAL_MESSAGE:
        return ""
    label = TYPE_LABELS.get(tag)
    if label is None:
        label = get_type_name(tag).replace("_", " ")
    return label


def numbered_lines(result: MenuResult) -> List[Tuple[Optional[int], GopherLine]]:
    """
    Pair menu lines with the number the user types to follow them.

    Informational and error lines get None.
    """
    entries = []
    number = 0
    for line in result.lines:
        if line.type in NON_SELECTABLE_TYPES:
            entries.append((None, line))
        else:
            number += 1
            entries.append((number, line))
    return entries


def hex_preview(data: bytes, length: int = HEX_PREVIEW_BYTES) -> str:
    """Hex dump of the first bytes of a binary payload."""
    rows = []
    for offset in range(0, min(len(data), length), 16):
        chunk = data[offset:offset + 16]
        printable = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        rows.append(f"{offset:08x}  {chunk.hex(' '):<47}  {printable}")
    return "\n".join(rows)


def create_menu_table(result: MenuResult) -> Table:
    """Create the table for a submenu."""
    table = Table(show_header=True, header_style="bold magenta", box=box.SIMPLE)
    table.add_column("#", style="yellow", justify="right", width=4)
    table.add_column("Type", style="cyan", width=8)
    table.add_column("Item", style="white")
    table.add_column("Location", style="blue")

    for number, line in numbered_lines(result):
        if number is None:
            style = "red" if line.type == GopherItemType.ERROR else "dim"
            table.add_row("", type_label(line.type), Text(line.display_string, style=style), "")
        else:
            location = f"{line.hostname}:{line.port} {line.selector}"
            table.add_row(str(number), type_label(line.type), Text(line.display_string), Text(location))
    return table


def render_result(result: TransactionResult, console: Console, title: str = "") -> None:
    """
    Render a transaction result.

    Args:
        result: Result of GopherClient.transact()
        console: Console to render on
        title: Panel title, usually the URL that was fetched
    """
    if isinstance(result, MenuResult):
        console.print(Panel(create_menu_table(result), title=title or "Menu", border_style="green"))
    elif isinstance(result, TextResult):
        console.print(Panel(Text(result.text), title=title or "Text", border_style="blue"))
    elif isinstance(result, BinaryResult):
        summary = Text()
        summary.append(f"Binary content: {len(result.data)} bytes\n\n", style="bold yellow")
        summary.append(hex_preview(result.data), style="white")
        console.print(Panel(summary, title=title or "Binary", border_style="yellow"))
    else:
        raise TypeError(f"Not a transaction result: {result!r}")


class GopherBrowser:
    """
    Interactive Gopher browser.

    Commands:
    - <number>: Follow a menu item
    - B/b: Back
    - R/r: Reload
    - Q/q: Quit
    """

    def __init__(
        self,
        client: GopherClient,
        console: Optional[Console] = None,
        input_func: Callable[[str], str] = input,
    ):
        self.client = client
        self.console = console or Console()
        self.input_func = input_func
        self.history: List[GopherURL] = []
        self.current_result: Optional[TransactionResult] = None
        self.logger = logging.getLogger(__name__)

    @property
    def current_url(self) -> Optional[GopherURL]:
        return self.history[-1] if self.history else None

    def fetch(self, url: GopherURL) -> TransactionResult:
        """Run the transaction a URL stands for."""
        return self.client.transact(
            url.hostname, url.port, url.selector, url.response_type, query=url.query
        )

    def _load(self, url: GopherURL) -> bool:
        """Fetch and display a URL without touching the history."""
        try:
            result = self.fetch(url)
        except GopherError as e:
            self.logger.warning(f"Failed to open {url}: {e}")
            self.console.print(f"[red]Error: {escape(str(e))}[/red]")
            return False

        self.current_result = result
        render_result(result, self.console, title=str(url))
        return True

    def open(self, url: GopherURL) -> bool:
        """
        Fetch and display a URL, pushing it onto the history.

        Returns:
            bool: True if the URL was loaded, False on error
        """
        if not self._load(url):
            return False
        self.history.append(url)
        return True

    def follow(self, number: int) -> bool:
        """Follow the menu item with the given number."""
        if not isinstance(self.current_result, MenuResult):
            self.console.print("[yellow]Not viewing a menu[/yellow]")
            return False

        for entry_number, line in numbered_lines(self.current_result):
            if entry_number == number:
                break
        else:
            self.console.print(f"[yellow]No item {number}[/yellow]")
            return False

        if line.type in UNSUPPORTED_TYPES:
            self.console.print(
                f"[yellow]{type_label(line.type)} items are not supported: "
                f"{line.hostname}:{line.port}[/yellow]"
            )
            return False

        url = line.url
        if line.type == GopherItemType.FULL_TEXT_SEARCH:
            query = self.input_func("Search: ").strip()
            if not query:
                return False
            url = GopherURL(url.hostname, url.port, url.item_type, url.selector, query)
        return self.open(url)

    def back(self) -> bool:
        """Return to the previous location."""
        if len(self.history) < 2:
            self.console.print("[yellow]Already at the first page[/yellow]")
            return False
        if not self._load(self.history[-2]):
            return False
        self.history.pop()
        return True

    def reload(self) -> bool:
        """Fetch the current location again."""
        if self.current_url is None:
            return False
        return self._load(self.current_url)

    def handle_command(self, command: str) -> bool:
        """
        Execute one command.

        Returns:
            bool: False if the browser should quit
        """
        command = command.strip().lower()
        if command == "q":
            return False
        if command == "b":
            self.back()
        elif command == "r":
            self.reload()
        elif command.isdigit():
            self.follow(int(command))
        elif command:
            self.console.print("[yellow]Commands: <number>, b (back), r (reload), q (quit)[/yellow]")
        return True

    def run(self, start_url: GopherURL) -> None:
        """Run the interactive browser."""
        self.open(start_url)
        while True:
            try:
                command = self.input_func("\nCommand (#/b/r/q): ")
            except EOFError:
                break
            if not self.handle_command(command):
                break
