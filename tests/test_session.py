"""
Tests for session recording functionality.
"""

import json

import pytest
from gophervr.gopher.session import SessionLoader, SessionRecorder, describe_result
from gophervr.gopher.protocol import (
    BinaryResult, GopherItemType, GopherLine, MenuResult, TextResult
)


MENU = MenuResult((
    GopherLine(GopherItemType.SUBMENU, "Docs", "/docs", "example.org", 70),
    GopherLine(GopherItemType.TEXT_FILE, "About", "/about", "example.org", 70),
))


class TestDescribeResult:
    """Test cases for result summaries."""

    def test_menu(self):
        summary = describe_result(MENU)
        assert summary["result_kind"] == "menu"
        assert summary["item_count"] == 2
        assert summary["preview"] == "Docs | About"

    def test_text(self):
        summary = describe_result(TextResult("x" * 500))
        assert summary["result_kind"] == "text"
        assert summary["text_length"] == 500
        assert len(summary["preview"]) == 200

    def test_binary(self):
        summary = describe_result(BinaryResult(b"\x00\x01\xff"))
        assert summary["result_kind"] == "binary"
        assert summary["payload_length"] == 3
        assert summary["preview"] == "00 01 ff"

    def test_not_a_result(self):
        with pytest.raises(TypeError):
            describe_result("plain string")


class TestSessionRecorder:
    """Test cases for SessionRecorder class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.recorder = SessionRecorder("test_session")

    def test_recorder_initialization(self):
        assert self.recorder.session_id == "test_session"
        assert self.recorder.interactions == []
        assert self.recorder.start_time > 0

    def test_recorder_auto_session_id(self):
        recorder = SessionRecorder()
        assert recorder.session_id.startswith("session_")
        assert len(recorder.session_id) > 8

    def test_record_request(self):
        self.recorder.record_request(
            "example.org", 70, "/docs", GopherItemType.SUBMENU, 7, description="Open docs"
        )

        assert len(self.recorder.interactions) == 1
        interaction = self.recorder.interactions[0]

        assert interaction["type"] == "request"
        assert interaction["direction"] == "client -> server"
        assert interaction["host"] == "example.org"
        assert interaction["port"] == 70
        assert interaction["selector"] == "/docs"
        assert interaction["query"] is None
        assert interaction["item_type"] == "1"
        assert interaction["item_type_name"] == "SUBMENU"
        assert interaction["request_length"] == 7
        assert interaction["url"] == "gopher://example.org/1/docs"
        assert interaction["description"] == "Open docs"
        assert "timestamp" in interaction
        assert "relative_time" in interaction

    def test_record_search_request(self):
        self.recorder.record_request("h", 70, "/s", "1", 12, query="terms")
        assert self.recorder.interactions[0]["query"] == "terms"
        assert self.recorder.interactions[0]["url"] == "gopher://h/1/s%09terms"

    def test_record_response(self):
        self.recorder.record_response(MENU, 80, "Menu received")

        interaction = self.recorder.interactions[0]
        assert interaction["type"] == "response"
        assert interaction["direction"] == "server -> client"
        assert interaction["response_length"] == 80
        assert interaction["result_kind"] == "menu"
        assert interaction["item_count"] == 2
        assert interaction["description"] == "Menu received"

    def test_record_event(self):
        details = {"host": "localhost", "port": 70}
        self.recorder.record_event("connection", "Connected to server", details)

        interaction = self.recorder.interactions[0]
        assert interaction["type"] == "event"
        assert interaction["event_type"] == "connection"
        assert interaction["description"] == "Connected to server"
        assert interaction["details"] == details

    def test_record_event_without_details(self):
        self.recorder.record_event("disconnection", "Closed")
        assert self.recorder.interactions[0]["details"] == {}

    def test_session_summary(self):
        self.recorder.record_request("h", 70, "/a", "0", 4)
        self.recorder.record_response(TextResult("hi"), 2)
        self.recorder.record_request("h", 70, "/b", "1", 4)
        self.recorder.record_event("error", "Failed", {"error_type": "receive_failed"})

        summary = self.recorder.get_session_summary()

        assert summary["session_id"] == "test_session"
        assert summary["total_interactions"] == 4
        assert summary["requests"] == 2
        assert summary["responses"] == 1
        assert summary["events"] == 1
        assert summary["errors"] == 1
        assert summary["selectors_requested"] == ["/a", "/b"]
        assert summary["results_received"] == ["text"]

    def test_save_session(self, tmp_path):
        self.recorder.record_request("h", 70, "/a", "0", 4)
        self.recorder.record_response(TextResult("héllo"), 6)

        filepath = self.recorder.save_session(str(tmp_path / "sessions"))

        with open(filepath, encoding="utf-8") as f:
            data = json.load(f)

        assert filepath.endswith("test_session.json")
        assert data["session_id"] == "test_session"
        assert data["total_interactions"] == 2
        assert data["metadata"]["protocol"] == "Gopher (RFC 1436)"
        assert data["interactions"][1]["preview"] == "héllo"
        assert data["end_time"] >= data["start_time"]


class TestSessionLoader:
    """Test cases for SessionLoader class."""

    def test_load_session(self, tmp_path):
        recorder = SessionRecorder("loadable")
        recorder.record_event("connection", "Connected")
        filepath = recorder.save_session(str(tmp_path))

        data = SessionLoader.load_session(filepath)

        assert data["session_id"] == "loadable"
        assert SessionLoader.get_session_interactions(filepath)[0]["event_type"] == "connection"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SessionLoader.load_session(str(tmp_path / "missing.json"))

    def test_list_sessions_missing_dir(self, tmp_path):
        assert SessionLoader.list_sessions(str(tmp_path / "nope")) == []

    def test_list_sessions_newest_first(self, tmp_path):
        older = SessionRecorder("older")
        older.start_time = 1000.0
        older.save_session(str(tmp_path))
        newer = SessionRecorder("newer")
        newer.start_time = 2000.0
        newer.save_session(str(tmp_path))

        sessions = SessionLoader.list_sessions(str(tmp_path))

        assert [s["session_id"] for s in sessions] == ["newer", "older"]
        assert sessions[0]["filename"] == "newer.json"
        assert sessions[0]["recorded_at"] is not None

    def test_list_sessions_skips_invalid_files(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json")
        (tmp_path / "list.json").write_text("[1, 2, 3]")
        SessionRecorder("valid").save_session(str(tmp_path))

        sessions = SessionLoader.list_sessions(str(tmp_path))

        assert [s["session_id"] for s in sessions] == ["valid"]
