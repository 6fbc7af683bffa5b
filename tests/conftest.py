"""
Pytest configuration and fixtures.
"""

import logging
import socket
import socketserver
import threading
from typing import Dict, List

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast tests without network access")
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (may be slow)"
    )


class GopherTestServer:
    """
    Minimal threaded Gopher server on 127.0.0.1.

    Responds to each request line with the bytes registered for its selector,
    then closes the connection.
    """

    def __init__(self):
        self.responses: Dict[str, bytes] = {}
        self.requests: List[bytes] = []
        self._server = None
        self._thread = None

    def start(self) -> None:
        owner = self

        class Handler(socketserver.StreamRequestHandler):
            def handle(self):
                line = self.rfile.readline()
                owner.requests.append(line)
                selector = line.decode("utf-8", errors="replace").rstrip("\r\n")
                self.wfile.write(owner.responses.get(selector, b""))

        class Server(socketserver.ThreadingTCPServer):
            allow_reuse_address = True
            daemon_threads = True

        self._server = Server(("127.0.0.1", 0), Handler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=5)


@pytest.fixture
def gopher_server():
    """A running local Gopher server; register responses on .responses."""
    server = GopherTestServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def unused_port():
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def sample_menu_bytes():
    """A small submenu as a server sends it."""
    return (
        b"iWelcome to the test server\t\terror.host\t1\r\n"
        b"1Documents\t/docs\t127.0.0.1\t70\r\n"
        b"0About this server\t/about.txt\t127.0.0.1\t70\r\n"
        b"7Search\t/search\t127.0.0.1\t70\r\n"
        b"9Archive\t/files/archive.zip\t127.0.0.1\t70\r\n"
        b".\r\n"
    )


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers the CLI attaches so they do not outlive captured streams."""
    yield
    logger = logging.getLogger("gophervr")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
