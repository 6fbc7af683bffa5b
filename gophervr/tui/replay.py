"""
TUI Session Replay Application

Steps through a session recorded by ``gopher-client --record``: every
request, the result it produced, and the connection events in between.
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console, Group
from rich.markup import escape
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..gopher.session import SessionLoader
from ..utils.logging import configure_cli_logging


logger = logging.getLogger(__name__)

TIMELINE_WINDOW = 12

INTERACTION_STYLES = {
    "request": "blue",
    "response": "green",
    "event": "yellow",
}


class SessionLoadError(Exception):
    """Raised when a session file cannot be replayed."""
    pass


def _truncate(value: str, limit: int = 100) -> str:
    if len(value) > limit:
        return value[:limit - 3] + "..."
    return value


def _clock(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%H:%M:%S.%f")[:-3]


def interaction_style(interaction: Dict[str, Any]) -> str:
    """Colour used for an interaction in the timeline and detail panel."""
    if interaction.get("event_type") == "error":
        return "red"
    return INTERACTION_STYLES.get(interaction.get("type"), "white")


def describe_interaction(interaction: Dict[str, Any]) -> str:
    """One-line timeline entry for an interaction."""
    time_offset = interaction.get("relative_time", 0)
    interaction_type = interaction.get("type", "unknown")

    if interaction_type == "request":
        selector = interaction.get("selector") or "/"
        entry = f"→ {interaction.get('item_type', '?')} {selector}"
    elif interaction_type == "response":
        kind = interaction.get("result_kind", "?")
        if kind == "menu":
            entry = f"← menu ({interaction.get('item_count', 0)} items)"
        else:
            entry = f"← {kind} ({interaction.get('response_length', 0)} bytes)"
    else:
        entry = f"• {interaction.get('event_type', 'event')}"

    return f"{time_offset:6.2f}s {entry}"


def session_servers(interactions: List[Dict[str, Any]]) -> List[str]:
    """Servers contacted during a session, in first-contact order."""
    servers = []
    for interaction in interactions:
        if interaction.get("type") != "request":
            continue
        server = f"{interaction.get('host', '?')}:{interaction.get('port', '?')}"
        if server not in servers:
            servers.append(server)
    return servers


class SessionReplayTUI:
    """
    Interactive TUI for replaying recorded Gopher sessions.

    Keybindings:
    - n: Next step
    - p: Previous step
    - f: First step
    - l: Last step
    - q: Quit
    """

    KEY_BINDINGS = {
        "n": "next_step",
        "p": "previous_step",
        "f": "first_step",
        "l": "last_step",
    }

    def __init__(self, session_file: str, console: Optional[Console] = None):
        self.session_file = session_file
        self.console = console or Console()
        self.session_data: Dict[str, Any] = {}
        self.interactions: List[Dict[str, Any]] = []
        self.current_step = 0
        self.load_session()

    def load_session(self) -> None:
        """
        Load session data from file.

        Raises:
            SessionLoadError: If the file is missing, invalid or empty
        """
        try:
            data = SessionLoader.load_session(self.session_file)
        except FileNotFoundError as e:
            raise SessionLoadError(f"Session file not found: {self.session_file}") from e
        except json.JSONDecodeError as e:
            raise SessionLoadError(f"Invalid JSON in session file: {self.session_file}") from e
        except UnicodeDecodeError as e:
            raise SessionLoadError(f"Session file is not UTF-8 text: {self.session_file}") from e
        except OSError as e:
            raise SessionLoadError(f"Cannot read session file {self.session_file}: {e}") from e

        if not isinstance(data, dict):
            raise SessionLoadError(f"Not a session recording: {self.session_file}")

        interactions = data.get("interactions") or []
        if not interactions:
            raise SessionLoadError(f"No interactions found in session file: {self.session_file}")

        self.session_data = data
        self.interactions = interactions
        self.current_step = 0
        logger.debug(f"Loaded {len(interactions)} interactions from {self.session_file}")

    @property
    def current_interaction(self) -> Dict[str, Any]:
        return self.interactions[self.current_step]

    @property
    def transaction_number(self) -> int:
        """Index (from 1) of the request the current step belongs to; 0 before any request."""
        return sum(
            1 for interaction in self.interactions[:self.current_step + 1]
            if interaction.get("type") == "request"
        )

    def _count(self, **match) -> int:
        return sum(
            1 for interaction in self.interactions
            if all(interaction.get(key) == value for key, value in match.items())
        )

    # Navigation

    def next_step(self) -> bool:
        """Move to the next step. Returns True if moved, False if at end."""
        if self.current_step >= len(self.interactions) - 1:
            return False
        self.current_step += 1
        return True

    def previous_step(self) -> bool:
        """Move to the previous step. Returns True if moved, False if at beginning."""
        if self.current_step == 0:
            return False
        self.current_step -= 1
        return True

    def first_step(self) -> bool:
        moved = self.current_step != 0
        self.current_step = 0
        return moved

    def last_step(self) -> bool:
        last = len(self.interactions) - 1
        moved = self.current_step != last
        self.current_step = last
        return moved

    def handle_key(self, key: str) -> bool:
        """
        Apply one key press.

        Returns:
            bool: False when the key asks to quit, True otherwise
        """
        key = key.strip().lower()
        if key == "q":
            return False
        action = self.KEY_BINDINGS.get(key)
        if action is not None:
            getattr(self, action)()
        return True

    # Rendering

    def create_header_panel(self) -> Panel:
        """Session identity, timing and the servers it talked to."""
        start_time = self.session_data.get("start_time", 0)
        servers = session_servers(self.interactions)

        header = Text()
        header.append("GOPHER SESSION REPLAY  ", style="bold green")
        header.append(f"{self.session_data.get('session_id', 'Unknown')}\n", style="cyan")
        header.append(
            f"Started {datetime.fromtimestamp(start_time):%Y-%m-%d %H:%M:%S}, "
            f"ran {self.session_data.get('duration', 0):.2f}s\n"
        )
        header.append(
            f"{self._count(type='request')} requests, "
            f"{self._count(type='response')} results, "
            f"{self._count(event_type='error')} errors\n"
        )
        header.append("Servers: ", style="bold")
        header.append(", ".join(servers) or "none")

        return Panel(header, title="Session", border_style="blue")

    def create_position_panel(self) -> Panel:
        """Where the replay is and which keys move it."""
        total_requests = self._count(type="request")

        position = Text()
        position.append(f"Step {self.current_step + 1}/{len(self.interactions)}\n", style="bold yellow")
        position.append(f"Transaction {self.transaction_number}/{total_requests}\n\n")
        for key, action in self.KEY_BINDINGS.items():
            position.append(f"{key}  {action.replace('_', ' ')}\n", style="green")
        position.append("q  quit", style="red")

        return Panel(position, title="Position", border_style="green")

    def create_interaction_table(self, interaction: Dict[str, Any]) -> Table:
        """Field-by-field view of one recorded interaction."""
        table = Table(show_header=False, box=box.SIMPLE)
        table.add_column("Field", style="cyan", width=16)
        table.add_column("Value")

        interaction_type = interaction.get("type", "unknown")
        table.add_row("At", f"{_clock(interaction.get('timestamp', 0))} (+{interaction.get('relative_time', 0):.3f}s)")
        table.add_row("Kind", interaction_type)

        if interaction_type == "request":
            table.add_row("Server", f"{interaction.get('host', '')}:{interaction.get('port', '')}")
            table.add_row("Selector", Text(repr(interaction.get("selector", ""))))
            if interaction.get("query") is not None:
                table.add_row("Query", Text(interaction["query"]))
            table.add_row(
                "Item Type",
                f"{interaction.get('item_type', '')} ({interaction.get('item_type_name', '')})",
            )
            table.add_row("Request Bytes", str(interaction.get("request_length", 0)))
        elif interaction_type == "response":
            table.add_row("Result", interaction.get("result_kind", ""))
            table.add_row("Response Bytes", str(interaction.get("response_length", 0)))
            if "item_count" in interaction:
                table.add_row("Menu Items", str(interaction["item_count"]))
        else:
            table.add_row("Event", interaction.get("event_type", ""))
            for key, value in (interaction.get("details") or {}).items():
                table.add_row(key, Text(_truncate(str(value))))

        if interaction.get("description"):
            table.add_row("Note", Text(interaction["description"]))

        return table

    def create_interaction_panel(self) -> Panel:
        """The current interaction, with the result preview underneath for responses."""
        interaction = self.current_interaction
        parts = [self.create_interaction_table(interaction)]

        preview = interaction.get("preview")
        if preview:
            parts.append(Panel(Text(preview), title="Preview", box=box.MINIMAL))

        return Panel(
            Group(*parts),
            title=f"{interaction.get('type', 'unknown').title()} {self.current_step + 1}",
            border_style=interaction_style(interaction),
        )

    def create_timeline_panel(self) -> Panel:
        """A window of timeline entries around the current step."""
        start = max(0, min(self.current_step - TIMELINE_WINDOW // 2, len(self.interactions) - TIMELINE_WINDOW))
        timeline = Text()

        for index, interaction in enumerate(self.interactions[start:start + TIMELINE_WINDOW], start):
            entry = describe_interaction(interaction)
            if index == self.current_step:
                timeline.append(f"► {entry}\n", style="bold yellow on blue")
            else:
                timeline.append(f"  {entry}\n", style=interaction_style(interaction))

        return Panel(timeline, title="Timeline", border_style="magenta")

    def create_layout(self) -> Layout:
        """Header across the top, timeline and position on the left, details on the right."""
        layout = Layout()
        layout.split_column(
            Layout(self.create_header_panel(), name="header", size=6),
            Layout(name="body"),
        )
        layout["body"].split_row(
            Layout(name="sidebar"),
            Layout(self.create_interaction_panel(), name="detail", ratio=2),
        )
        layout["sidebar"].split_column(
            Layout(self.create_timeline_panel(), name="timeline"),
            Layout(self.create_position_panel(), name="position", size=10),
        )
        return layout

    # Input loops

    def _run_simple(self) -> None:
        self.console.print("[yellow]Single-key input is not available; press Enter after each command[/yellow]")

        while True:
            self.console.clear()
            self.console.print(self.create_layout())
            if not self.handle_key(input("\nCommand (n/p/f/l/q): ")):
                break

    def run(self) -> None:
        """Run the interactive TUI."""
        try:
            import termios
            import tty
        except ImportError:
            logger.info("termios unavailable, falling back to line input")
            self._run_simple()
            return

        if not sys.stdin.isatty():
            self._run_simple()
            return

        old_settings = termios.tcgetattr(sys.stdin)
        with Live(self.create_layout(), refresh_per_second=10, screen=True) as live:
            try:
                tty.setraw(sys.stdin.fileno())
                while self.handle_key(sys.stdin.read(1)):
                    live.update(self.create_layout())
            finally:
                termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)


def list_sessions_command(sessions_dir: str = "sessions", console: Optional[Console] = None) -> None:
    """Print the recorded sessions in a directory, newest first."""
    console = console or Console()
    sessions = SessionLoader.list_sessions(sessions_dir)

    if not sessions:
        console.print(f"[yellow]No session files found in {escape(sessions_dir)}[/yellow]")
        return

    table = Table(title="Recorded Gopher Sessions", header_style="bold magenta")
    table.add_column("Session ID", style="cyan")
    table.add_column("Recorded At")
    table.add_column("Duration", style="green", justify="right")
    table.add_column("Interactions", style="yellow", justify="right")
    table.add_column("File", style="blue")

    for session in sessions:
        recorded_at = session.get("recorded_at")
        try:
            recorded_at = datetime.fromisoformat(recorded_at).strftime("%Y-%m-%d %H:%M:%S")
        except (TypeError, ValueError):
            recorded_at = recorded_at or "Unknown"

        duration = session.get("duration")
        table.add_row(
            Text(session.get("session_id") or "Unknown"),
            recorded_at,
            f"{duration:.2f}s" if duration else "Unknown",
            str(session.get("total_interactions") or 0),
            Text(session.get("filename", "")),
        )

    console.print(table)


def main(argv: Optional[List[str]] = None):
    """Main entry point for the session replay TUI."""
    parser = argparse.ArgumentParser(description="Replay a recorded Gopher session")
    parser.add_argument("--session", "-s", help="Session file to replay")
    parser.add_argument("--list", "-l", action="store_true", help="List available sessions")
    parser.add_argument("--sessions-dir", default="sessions", help="Directory containing session files")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args(argv)
    configure_cli_logging(verbose=args.verbose)
    console = Console()

    if args.list:
        list_sessions_command(args.sessions_dir, console)
        return 0

    if not args.session:
        console.print("[red]Error: No session file specified[/red]")
        console.print("Use --session <file> to replay one, or --list to see what is recorded")
        return 1

    try:
        SessionReplayTUI(args.session, console).run()
        return 0
    except KeyboardInterrupt:
        console.print("\nReplay interrupted by user")
        return 1
    except SessionLoadError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
