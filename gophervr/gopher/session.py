"""
Session recording for the Gopher client.

A session is the ordered list of everything one client did: each request it
sent, a summary of the result it got back, and the connection events around
them. Sessions are stored as one JSON file each and read back by the replay
TUI.
"""

import json
import time
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .. import __version__
from .protocol import (
    BinaryResult, GopherURL, ItemType, MenuResult, TextResult, TransactionResult, get_type_name
)


PREVIEW_LENGTH = 200
PREVIEW_MENU_ITEMS = 5
PREVIEW_BINARY_BYTES = 32

TO_SERVER = "client -> server"
TO_CLIENT = "server -> client"


def describe_result(result: TransactionResult) -> Dict[str, Any]:
    """
    Summarize a transaction result for recording.

    Full payloads are not stored; a menu keeps its first display strings,
    text its first characters and binary a hex dump of its first bytes.
    """
    if isinstance(result, MenuResult):
        return {
            "result_kind": "menu",
            "item_count": len(result),
            "preview": " | ".join(line.display_string for line in result.lines[:PREVIEW_MENU_ITEMS]),
        }
    if isinstance(result, TextResult):
        return {
            "result_kind": "text",
            "text_length": len(result.text),
            "preview": result.text[:PREVIEW_LENGTH],
        }
    if isinstance(result, BinaryResult):
        return {
            "result_kind": "binary",
            "payload_length": len(result),
            "preview": result.data[:PREVIEW_BINARY_BYTES].hex(" "),
        }
    raise TypeError(f"Not a transaction result: {result!r}")


class SessionRecorder:
    """
    Collects the interactions of one browsing session.

    Timestamps are wall-clock seconds; relative_time counts from the moment
    the recorder was created.
    """

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or f"session_{datetime.now():%Y%m%d_%H%M%S}"
        self.start_time = time.time()
        self.interactions: List[Dict[str, Any]] = []

    def _new_interaction(self, interaction_type: str, **fields) -> Dict[str, Any]:
        now = time.time()
        interaction = {
            "timestamp": now,
            "relative_time": now - self.start_time,
            "type": interaction_type,
        }
        interaction.update(fields)
        self.interactions.append(interaction)
        return interaction

    def record_request(
        self,
        hostname: str,
        port: int,
        selector: str,
        requested_type: ItemType,
        request_length: int,
        query: Optional[str] = None,
        description: str = "",
    ) -> None:
        """
        Record the request line of a transaction.

        Args:
            hostname: Server the request is sent to
            port: Server port
            selector: Selector being requested
            requested_type: Item type the response will be interpreted as
            request_length: Number of bytes written, including CR LF
            query: Search terms, if any
            description: Free-form note shown by the replay TUI
        """
        self._new_interaction(
            "request",
            direction=TO_SERVER,
            host=hostname,
            port=port,
            selector=selector,
            query=query,
            item_type=str(requested_type),
            item_type_name=get_type_name(requested_type),
            url=str(GopherURL(hostname, port, requested_type, selector, query)),
            request_length=request_length,
            description=description,
        )

    def record_response(
        self,
        result: TransactionResult,
        response_length: int,
        description: str = "",
    ) -> None:
        """Record the interpreted response; response_length is the raw byte count."""
        self._new_interaction(
            "response",
            direction=TO_CLIENT,
            response_length=response_length,
            description=description,
            **describe_result(result),
        )

    def record_event(self, event_type: str, description: str, details: Dict[str, Any] = None) -> None:
        """Record a connection, disconnection or error event."""
        self._new_interaction(
            "event",
            event_type=event_type,
            description=description,
            details=details or {},
        )

    def save_session(self, output_dir: str = "sessions") -> str:
        """
        Write the session to <output_dir>/<session_id>.json.

        Returns:
            str: Path to the saved session file
        """
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        end_time = time.time()
        session_data = {
            "session_id": self.session_id,
            "start_time": self.start_time,
            "end_time": end_time,
            "duration": end_time - self.start_time,
            "total_interactions": len(self.interactions),
            "metadata": {
                "protocol": "Gopher (RFC 1436)",
                "client_version": __version__,
                "recorded_at": datetime.now().isoformat(),
            },
            "interactions": self.interactions,
        }

        filepath = output_path / f"{self.session_id}.json"
        filepath.write_text(json.dumps(session_data, indent=2, ensure_ascii=False), encoding="utf-8")
        return str(filepath)

    def get_session_summary(self) -> Dict[str, Any]:
        """Counts of what happened so far, plus the selectors asked for and the result kinds received."""
        kinds = Counter(i["type"] for i in self.interactions)

        return {
            "session_id": self.session_id,
            "duration": time.time() - self.start_time,
            "total_interactions": len(self.interactions),
            "requests": kinds["request"],
            "responses": kinds["response"],
            "events": kinds["event"],
            "errors": sum(1 for i in self.interactions if i.get("event_type") == "error"),
            "selectors_requested": [i["selector"] for i in self.interactions if i["type"] == "request"],
            "results_received": [i["result_kind"] for i in self.interactions if i["type"] == "response"],
        }


class SessionLoader:
    """
    Reads recorded sessions back from disk.
    """

    @staticmethod
    def load_session(filepath: str) -> Dict[str, Any]:
        """
        Load a session from a JSON file.

        Raises:
            FileNotFoundError: If session file doesn't exist
            json.JSONDecodeError: If session file is invalid JSON
        """
        return json.loads(Path(filepath).read_text(encoding="utf-8"))

    @staticmethod
    def _listing_entry(session_file: Path, session_data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "filename": session_file.name,
            "filepath": str(session_file),
            "session_id": session_data.get("session_id"),
            "start_time": session_data.get("start_time"),
            "duration": session_data.get("duration"),
            "total_interactions": session_data.get("total_interactions"),
            "recorded_at": (session_data.get("metadata") or {}).get("recorded_at"),
        }

    @staticmethod
    def list_sessions(sessions_dir: str = "sessions") -> List[Dict[str, Any]]:
        """
        List the session files in a directory, newest first.

        Files that are not JSON objects are skipped.
        """
        sessions_path = Path(sessions_dir)
        if not sessions_path.is_dir():
            return []

        sessions = []
        for session_file in sessions_path.glob("*.json"):
            try:
                session_data = SessionLoader.load_session(str(session_file))
            except (json.JSONDecodeError, UnicodeDecodeError):
                continue
            if isinstance(session_data, dict):
                sessions.append(SessionLoader._listing_entry(session_file, session_data))

        sessions.sort(key=lambda entry: entry["start_time"] or 0, reverse=True)
        return sessions

    @staticmethod
    def get_session_interactions(filepath: str) -> List[Dict[str, Any]]:
        return SessionLoader.load_session(filepath).get("interactions", [])
