"""
Gopher Transaction Client

This module implements the request/response cycle of the Gopher protocol:
one connection per call, the selector line as the whole request, and the
connection close as the end of the response.
"""

import argparse
import asyncio
import logging
import socket
import sys
import time
from dataclasses import replace
from enum import Enum
from typing import List, Optional

from .protocol import (
    DEFAULT_PORT, BinaryResult, GopherItemType, ItemType, MenuResult,
    TextResult, TransactionResult,
    coerce_item_type, encode_request, get_type_name, interpret_response,
    parse_gopher_url, validate_port,
)
from .session import SessionRecorder
from .exceptions import (
    GopherError, ConnectionError, IoError, TimeoutError
)


CHUNK_SIZE = 4096
DEFAULT_TIMEOUT = 10.0


class TransactionState(Enum):
    """Lifecycle of a single transaction."""

    IDLE = "idle"
    CONNECTING = "connecting"
    SENDING = "sending"
    RECEIVING = "receiving"
    PARSED_MENU = "parsed_menu"
    PARSED_TEXT = "parsed_text"
    PARSED_BINARY = "parsed_binary"
    CLOSED = "closed"
    FAILED = "failed"


_PARSED_STATES = {
    MenuResult: TransactionState.PARSED_MENU,
    TextResult: TransactionState.PARSED_TEXT,
    BinaryResult: TransactionState.PARSED_BINARY,
}


class GopherClient:
    """
    Gopher protocol client.

    The client only holds configuration. Every call to transact() opens and
    closes its own socket, so one instance may be shared between threads.
    timeout bounds the whole transaction, not each socket operation.
    """

    def __init__(
        self,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        chunk_size: int = CHUNK_SIZE,
        record_session: bool = False,
        session_recorder: Optional[SessionRecorder] = None,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.timeout = timeout
        self.chunk_size = chunk_size
        if session_recorder is None and record_session:
            session_recorder = SessionRecorder()
        self.session_recorder = session_recorder
        self.logger = logging.getLogger(__name__)

    def _transition(self, state: TransactionState, hostname: str, port: int) -> TransactionState:
        self.logger.debug(f"[{hostname}:{port}] -> {state.value}")
        return state

    def _fail(self, error: GopherError, hostname: str, port: int, error_type: str) -> GopherError:
        """Log and record a failure, returning the error for the caller to raise."""
        self._transition(TransactionState.FAILED, hostname, port)
        self.logger.error(str(error))
        if self.session_recorder:
            self.session_recorder.record_event(
                "error", str(error), {"error_type": error_type, "host": hostname, "port": port}
            )
        return error

    def _remaining(self, deadline: Optional[float]) -> Optional[float]:
        """Seconds left before the deadline, as a socket timeout."""
        if deadline is None:
            return None
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("deadline expired")
        return remaining

    def _connect(self, hostname: str, port: int, deadline: Optional[float] = None) -> socket.socket:
        """
        Open the connection for one transaction.

        Raises:
            ConnectionError: If resolution or connection fails
            TimeoutError: If the connection attempt times out
        """
        self.logger.info(f"Connecting to {hostname}:{port}")
        try:
            sock = socket.create_connection((hostname, port), timeout=self._remaining(deadline))
        except socket.timeout as e:
            raise self._fail(
                TimeoutError(f"Timed out connecting to {hostname}:{port}"),
                hostname, port, "connect_timeout",
            ) from e
        except OSError as e:
            raise self._fail(
                ConnectionError(f"Failed to connect to {hostname}:{port}: {e}"),
                hostname, port, "connection_failed",
            ) from e

        if self.session_recorder:
            self.session_recorder.record_event(
                "connection",
                f"Connected to {hostname}:{port}",
                {"host": hostname, "port": port, "timeout": self.timeout},
            )
        return sock

    def _send_request(
        self,
        sock: socket.socket,
        request: bytes,
        hostname: str,
        port: int,
        deadline: Optional[float] = None,
    ) -> None:
        """
        Write the request line.

        Raises:
            IoError: If sending fails
            TimeoutError: If sending times out
        """
        try:
            sock.settimeout(self._remaining(deadline))
            sock.sendall(request)
        except socket.timeout as e:
            raise self._fail(
                TimeoutError(f"Timed out sending request to {hostname}:{port}"),
                hostname, port, "send_timeout",
            ) from e
        except OSError as e:
            raise self._fail(
                IoError(f"Failed to send request to {hostname}:{port}: {e}"),
                hostname, port, "send_failed",
            ) from e
        self.logger.info(f"Sent request ({len(request)} bytes)")

    def _receive_all(
        self,
        sock: socket.socket,
        hostname: str,
        port: int,
        deadline: Optional[float] = None,
    ) -> bytes:
        """
        Drain the socket until the server closes the connection.

        Returns:
            bytes: The complete response

        Raises:
            IoError: If receiving fails
            TimeoutError: If the server stops sending without closing
        """
        chunks: List[bytes] = []
        try:
            while True:
                sock.settimeout(self._remaining(deadline))
                chunk = sock.recv(self.chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
        except socket.timeout as e:
            raise self._fail(
                TimeoutError(f"Timed out receiving response from {hostname}:{port}"),
                hostname, port, "receive_timeout",
            ) from e
        except OSError as e:
            raise self._fail(
                IoError(f"Failed to receive response from {hostname}:{port}: {e}"),
                hostname, port, "receive_failed",
            ) from e

        data = b"".join(chunks)
        self.logger.info(f"Received {len(data)} bytes")
        return data

    def transact(
        self,
        hostname: str,
        port: int = DEFAULT_PORT,
        selector: str = "",
        requested_type: ItemType = GopherItemType.SUBMENU,
        query: Optional[str] = None,
    ) -> TransactionResult:
        """
        Perform one Gopher transaction.

        Args:
            hostname: Server hostname or IP address
            port: Server port
            selector: Selector to request; empty for the root menu
            requested_type: Item type used to interpret the response
            query: Search terms sent after the selector, for search servers

        Returns:
            TransactionResult: MenuResult for submenus, TextResult for text
            files and errors, BinaryResult for everything else

        Raises:
            ValidationError: If the selector, query or port is invalid
            ConnectionError: If the server cannot be reached
            IoError: If the transfer fails
            TimeoutError: If the deadline expires
            ProtocolError: If a submenu line is malformed
        """
        requested_type = coerce_item_type(requested_type)
        # Validation happens before any socket is opened
        validate_port(port)
        request = encode_request(selector, query)

        self._transition(TransactionState.IDLE, hostname, port)
        self.logger.info(
            f"Requesting {get_type_name(requested_type)} {selector!r} from {hostname}:{port}"
        )
        if self.session_recorder:
            self.session_recorder.record_request(
                hostname, port, selector, requested_type, len(request), query=query
            )

        # One deadline covers connect, send and every receive
        deadline = None if self.timeout is None else time.monotonic() + self.timeout

        self._transition(TransactionState.CONNECTING, hostname, port)
        sock = self._connect(hostname, port, deadline)
        with sock:
            self._transition(TransactionState.SENDING, hostname, port)
            self._send_request(sock, request, hostname, port, deadline)

            self._transition(TransactionState.RECEIVING, hostname, port)
            data = self._receive_all(sock, hostname, port, deadline)

            try:
                result = interpret_response(data, requested_type, hostname, port)
            except GopherError as e:
                raise self._fail(e, hostname, port, "protocol_error")
            self._transition(_PARSED_STATES[type(result)], hostname, port)

        self._transition(TransactionState.CLOSED, hostname, port)
        if self.session_recorder:
            self.session_recorder.record_response(result, len(data))
            self.session_recorder.record_event("disconnection", "Connection closed")
        return result

    def search(
        self,
        hostname: str,
        port: int,
        selector: str,
        query: str,
    ) -> TransactionResult:
        """
        Query a full-text search server (item type 7).

        Search servers answer with a submenu of matching items.
        """
        return self.transact(hostname, port, selector, GopherItemType.SUBMENU, query=query)


def transact(
    hostname: str,
    port: int = DEFAULT_PORT,
    selector: str = "",
    requested_type: ItemType = GopherItemType.SUBMENU,
    query: Optional[str] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> TransactionResult:
    """Perform one Gopher transaction with a throwaway client."""
    client = GopherClient(timeout=timeout)
    return client.transact(hostname, port, selector, requested_type, query=query)


async def _exchange_async(
    hostname: str,
    port: int,
    request: bytes,
    chunk_size: int,
) -> bytes:
    logger = logging.getLogger(__name__)
    try:
        reader, writer = await asyncio.open_connection(hostname, port)
    except OSError as e:
        raise ConnectionError(f"Failed to connect to {hostname}:{port}: {e}") from e

    try:
        try:
            writer.write(request)
            await writer.drain()
        except OSError as e:
            raise IoError(f"Failed to send request to {hostname}:{port}: {e}") from e

        chunks: List[bytes] = []
        try:
            while True:
                chunk = await reader.read(chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
        except OSError as e:
            raise IoError(f"Failed to receive response from {hostname}:{port}: {e}") from e
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.warning(f"Error during disconnect: {e}")

    return b"".join(chunks)


async def transact_async(
    hostname: str,
    port: int = DEFAULT_PORT,
    selector: str = "",
    requested_type: ItemType = GopherItemType.SUBMENU,
    query: Optional[str] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    chunk_size: int = CHUNK_SIZE,
) -> TransactionResult:
    """
    Perform one Gopher transaction as a cooperative task.

    Same semantics as GopherClient.transact(). Cancelling the task closes
    the connection and propagates asyncio.CancelledError.

    Raises:
        TimeoutError: If the whole transaction takes longer than timeout
    """
    logger = logging.getLogger(__name__)
    requested_type = coerce_item_type(requested_type)
    validate_port(port)
    request = encode_request(selector, query)

    logger.info(
        f"Requesting {get_type_name(requested_type)} {selector!r} from {hostname}:{port}"
    )
    try:
        data = await asyncio.wait_for(
            _exchange_async(hostname, port, request, chunk_size), timeout
        )
    except asyncio.TimeoutError as e:
        logger.error(f"Transaction with {hostname}:{port} timed out after {timeout}s")
        raise TimeoutError(f"Timed out talking to {hostname}:{port}") from e
    except GopherError as e:
        logger.error(str(e))
        raise

    logger.info(f"Received {len(data)} bytes")
    return interpret_response(data, requested_type, hostname, port)


def main(argv: Optional[List[str]] = None):
    """Main entry point for the Gopher client."""
    # Imported here so the protocol layer does not depend on the terminal UI
    from rich.console import Console
    from rich.markup import escape
    from ..tui.browser import GopherBrowser, render_result
    from ..utils.logging import configure_cli_logging

    parser = argparse.ArgumentParser(description="Gopher (RFC 1436) client")
    parser.add_argument("url", help="Gopher URL, e.g. gopher://gopher.floodgap.com/1/")
    parser.add_argument("--type", "-t", dest="item_type", help="Override the item type in the URL")
    parser.add_argument("--query", "-q", help="Search terms for a type 7 item")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT, help="Deadline for the whole transaction, in seconds")
    parser.add_argument("--browse", "-b", action="store_true", help="Open the interactive browser")
    parser.add_argument("--record", action="store_true", help="Enable session recording")
    parser.add_argument("--sessions-dir", default="sessions", help="Directory for recorded sessions")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args(argv)

    configure_cli_logging(verbose=args.verbose)
    console = Console()
    client = GopherClient(timeout=args.timeout, record_session=args.record)

    try:
        url = parse_gopher_url(args.url)
        if args.item_type:
            url = replace(url, item_type=coerce_item_type(args.item_type))
        if args.query is not None:
            url = replace(url, query=args.query)

        if args.browse:
            GopherBrowser(client, console=console).run(url)
        else:
            result = client.transact(
                url.hostname, url.port, url.selector, url.response_type, query=url.query
            )
            render_result(result, console, title=str(url))
        return 0

    except KeyboardInterrupt:
        console.print("\nInterrupted by user")
        return 1
    except GopherError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    finally:
        if client.session_recorder and client.session_recorder.interactions:
            session_file = client.session_recorder.save_session(args.sessions_dir)
            console.print(f"Session saved to: {session_file}")


if __name__ == "__main__":
    sys.exit(main())
