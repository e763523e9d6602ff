"""
Transport layer for WebSocket connections.

Each WebSocket text frame carries one protocol line. The acceptor owns the
listening server and reports its lifecycle to an AcceptorListener; every
accepted connection runs on its own task, named after the peer.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

import websockets
from websockets.asyncio.server import Server, ServerConnection
from websockets.exceptions import ConnectionClosed, ConnectionClosedError
from websockets.protocol import State

from RelayChat.core.server.interfaces import AcceptorListener

logger = logging.getLogger(__name__)


def format_address(address) -> str:
    """Render a socket address tuple as ``host:port``."""
    if isinstance(address, (tuple, list)) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)


class WebSocketConnection:
    """
    Wrapper around ServerConnection that implements TransportConnection.

    Provides a line-oriented interface for sending and receiving and
    tracks the connection state.
    """

    def __init__(self, websocket: ServerConnection):
        """
        Initialize WebSocket connection wrapper.

        Args:
            websocket: Underlying WebSocket connection
        """
        self._websocket = websocket
        self._closed = False

    @property
    def remote_address(self) -> str:
        return format_address(self._websocket.remote_address)

    async def send(self, line: str) -> bool:
        """
        Send a line through the connection.

        Args:
            line: Line to send

        Returns:
            True if the line was sent successfully
        """
        if self._closed:
            return False

        try:
            await self._websocket.send(line)
            return True
        except Exception as e:
            logger.debug("Failed to send to %s: %s", self.remote_address, e)
            return False

    async def close(self) -> None:
        """Close the connection."""
        if not self._closed:
            self._closed = True
            try:
                await self._websocket.close()
            except Exception as e:
                logger.debug("Error closing connection to %s: %s", self.remote_address, e)

    def is_open(self) -> bool:
        """Check if connection is open."""
        if self._closed:
            return False
        return self._websocket.state is State.OPEN

    async def lines(self) -> AsyncIterator[str]:
        """
        Yield received lines until the peer closes the connection.

        Raises:
            ConnectionError: if the connection is lost without a close handshake
        """
        try:
            async for message in self._websocket:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                yield message.rstrip("\r\n")
        except ConnectionClosedError as e:
            raise ConnectionError(f"Connection to {self.remote_address} lost: {e}") from e
        except ConnectionClosed:
            return


class WebSocketAcceptor:
    """
    Accepts WebSocket connections and reports them to a listener.

    ``run`` blocks until ``interrupt`` is called. Between two checks of the
    stop signal it waits at most ``accept_timeout`` seconds and fires the
    accept-timeout heartbeat.
    """

    def __init__(
        self,
        listener: AcceptorListener,
        name: str,
        host: str,
        port: int,
        accept_timeout: float
    ):
        """
        Initialize the acceptor.

        Args:
            listener: Receiver of the acceptor events
            name: Acceptor name, used as its task name in logs
            host: Host to bind to
            port: Port to listen on (0 picks a free port)
            accept_timeout: Seconds between two checks of the stop signal
        """
        self._listener = listener
        self.name = name
        self.host = host
        self.port = port
        self._accept_timeout = accept_timeout
        self._stop_event = asyncio.Event()
        self._server: Optional[Server] = None

    @property
    def server(self) -> Optional[Server]:
        return self._server

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually bound, useful when listening on port 0."""
        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    def interrupt(self) -> None:
        """Ask ``run`` to stop accepting and return."""
        self._stop_event.set()

    def is_interrupted(self) -> bool:
        return self._stop_event.is_set()

    async def run(self) -> None:
        try:
            await self._listener.on_acceptor_start(self)
            self._server = await websockets.serve(self._handle_connection, self.host, self.port)
        except Exception as e:
            await self._listener.on_acceptor_error(self, e)
            await self._listener.on_acceptor_stop(self)
            return

        try:
            await self._listener.on_listen_socket_created(self)
            while not self.is_interrupted():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._accept_timeout)
                except asyncio.TimeoutError:
                    await self._listener.on_accept_timeout(self)
        except Exception as e:
            await self._listener.on_acceptor_error(self, e)
        finally:
            # Stop accepting, let the listener close its sessions, then wait
            # for the connection handlers to finish
            self._server.close(close_connections=False)
            await self._listener.on_acceptor_stop(self)
            await self._server.wait_closed()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        connection = WebSocketConnection(websocket)
        task = asyncio.current_task()
        if task is not None:
            task.set_name(f"SocketThread {connection.remote_address}")
        try:
            await self._listener.on_connection_accepted(self, connection)
        except Exception as e:
            await self._listener.on_acceptor_error(self, e)
            await connection.close()


__all__ = [
    'format_address',
    'WebSocketConnection',
    'WebSocketAcceptor',
]
