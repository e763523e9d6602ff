"""
Chat server that composes all server components.

This is the main entry point: it owns the session registry, runs the
acceptor and the auth watchdog, and applies the auth state machine to every
line a session receives.

Architecture:
    ┌─────────────────────────────────────────────────────────────┐
    │                         ChatServer                          │
    │  ┌──────────────┐  ┌──────────────┐  ┌───────────────────┐  │
    │  │ WebSocket    │  │ Session      │  │ Session state     │  │
    │  │ Acceptor     │  │ Registry     │  │ machine           │  │
    │  └──────────────┘  └──────────────┘  └───────────────────┘  │
    │  ┌──────────────┐  ┌──────────────────────────────────────┐ │
    │  │ Auth         │  │ Credential store                     │ │
    │  │ Watchdog     │  │ (SQLite / in-memory)                 │ │
    │  └──────────────┘  └──────────────────────────────────────┘ │
    └─────────────────────────────────────────────────────────────┘

Every handler that reads and then changes registry state runs under
``registry.lock``; the watchdog takes the same lock for its scans. Sessions
are only picked and unregistered under the lock: closing waits for the
peer's close handshake, so it happens after the lock is released.

Shutdown order:
    stop() → acceptor stops accepting → every registered session is closed
    → each session's stop hook unregisters it → registry is empty
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional, Set

from RelayChat.config import config
from RelayChat.core.message.protocol import (
    SERVER_NAME,
    ServerBroadcast,
    UserList,
)
from RelayChat.core.server.auth import AuthAction, SessionStateMachine, Transition
from RelayChat.core.server.interfaces import (
    AcceptorListener,
    CredentialStore,
    ServerLifecycle,
    SessionListener,
    TransportConnection,
)
from RelayChat.core.server.registry import SessionRegistry
from RelayChat.core.server.session import ClientSession, close_sessions
from RelayChat.core.server.transport import WebSocketAcceptor
from RelayChat.core.server.watchdog import AuthWatchdog

logger = logging.getLogger(__name__)


class ChatServer(AcceptorListener, SessionListener, ServerLifecycle):
    """
    Chat relay server.

    Example:
        server = ChatServer(SQLiteCredentialStore("relaychat.db"))

        async with server.run(port=8189):
            await server.wait_closed()
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        host: Optional[str] = None,
        auth_timeout: Optional[float] = None,
        accept_timeout: Optional[float] = None,
        watchdog_interval: Optional[float] = None,
        clock=time.monotonic
    ):
        """
        Initialize the chat server.

        Args:
            credential_store: Backend used to check logins
            host: Host to bind to (defaults to config.DEFAULT_HOST)
            auth_timeout: Seconds a session may stay unauthorized
            accept_timeout: Seconds between two checks of the stop signal
            watchdog_interval: Seconds between two watchdog scans
            clock: Monotonic time source handed to every session
        """
        self._credential_store = credential_store
        self._host = host or config.DEFAULT_HOST
        self._auth_timeout = config.AUTH_TIMEOUT if auth_timeout is None else auth_timeout
        self._accept_timeout = config.ACCEPT_TIMEOUT if accept_timeout is None else accept_timeout
        self._clock = clock

        self._registry = SessionRegistry()
        self._state_machine = SessionStateMachine(
            credential_store,
            self._registry.find_by_nickname
        )
        self._watchdog = AuthWatchdog(
            self._registry,
            config.WATCHDOG_INTERVAL if watchdog_interval is None else watchdog_interval,
            on_evict=self._on_session_evicted
        )

        self._acceptor: Optional[WebSocketAcceptor] = None
        self._acceptor_task: Optional[asyncio.Task] = None
        self._ready = asyncio.Event()
        self._stopping = False
        self._closing: Set[asyncio.Task] = set()

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def credential_store(self) -> CredentialStore:
        return self._credential_store

    @property
    def watchdog(self) -> AuthWatchdog:
        return self._watchdog

    @property
    def is_running(self) -> bool:
        """Check if the acceptor is alive."""
        return self._acceptor_task is not None and not self._acceptor_task.done()

    @property
    def port(self) -> Optional[int]:
        """Port the server listens on, once started."""
        if self._acceptor is None:
            return None
        return self._acceptor.bound_port

    @property
    def nicknames(self) -> List[str]:
        """Nicknames currently logged in, in connection order."""
        return self._registry.authorized_nicknames()

    # ==================== Lifecycle ====================

    @asynccontextmanager
    async def run(self, port: Optional[int] = None, host: Optional[str] = None):
        """
        Run the server as an async context manager.

        Args:
            port: Port to listen on
            host: Host to bind to

        Yields:
            The server instance
        """
        await self.start(port, host)
        try:
            yield self
        finally:
            await self.stop()

    async def start(self, port: Optional[int] = None, host: Optional[str] = None) -> None:
        """
        Start the acceptor and the watchdog.

        Returns once the listening socket exists or the acceptor gave up.
        Calling it on a running server only logs.

        Args:
            port: Port to listen on (defaults to config.DEFAULT_SERVER_PORT, 0 picks one)
            host: Host to bind to
        """
        if self.is_running:
            logger.info("Server already started")
            return

        self._stopping = False
        self._ready.clear()
        self._acceptor = WebSocketAcceptor(
            self,
            "Chat server",
            host or self._host,
            config.DEFAULT_SERVER_PORT if port is None else port,
            self._accept_timeout
        )
        self._acceptor_task = asyncio.create_task(self._acceptor.run(), name=self._acceptor.name)
        self._watchdog.start()
        await self._ready.wait()

    async def stop(self) -> None:
        """
        Stop the server and wait for every session to close.

        Calling it on a stopped server only logs.
        """
        if not self.is_running:
            logger.info("Server is not running")
            return

        self._acceptor.interrupt()
        await self._acceptor_task

    async def wait_closed(self) -> None:
        """Wait until the acceptor has stopped."""
        if self._acceptor_task is not None:
            await asyncio.shield(self._acceptor_task)

    # ==================== Acceptor events ====================

    async def on_acceptor_start(self, acceptor) -> None:
        logger.info("Server thread started")
        self._credential_store.connect()

    async def on_acceptor_stop(self, acceptor) -> None:
        logger.info("Server thread stopped")
        self._stopping = True
        await self._watchdog.stop()
        async with self._registry.lock:
            self._credential_store.disconnect()
            remaining = self._registry.snapshot()
        await close_sessions(remaining)
        await asyncio.gather(*self._closing)
        self._ready.set()

    async def on_listen_socket_created(self, acceptor) -> None:
        logger.info("Server socket created on %s:%s", acceptor.host, acceptor.bound_port)
        self._ready.set()

    async def on_accept_timeout(self, acceptor) -> None:
        pass

    async def on_connection_accepted(self, acceptor, connection: TransportConnection) -> None:
        logger.info("Client connected: %s", connection.remote_address)
        session = ClientSession(
            self,
            f"SocketThread {connection.remote_address}",
            connection,
            self._auth_timeout,
            clock=self._clock
        )
        await session.run()

    async def on_acceptor_error(self, acceptor, error: Exception) -> None:
        logger.error("Acceptor error: %s", error, exc_info=error)

    # ==================== Session events ====================

    async def on_session_start(self, session: ClientSession) -> None:
        logger.debug("Session started: %s", session.name)

    async def on_session_ready(self, session: ClientSession) -> None:
        async with self._registry.lock:
            if not self._stopping:
                self._registry.add(session)
                return
        await session.close()

    async def on_session_stop(self, session: ClientSession) -> None:
        async with self._registry.lock:
            self._registry.remove(session)
            if session.is_authorized():
                await self._registry.broadcast(
                    ServerBroadcast(SERVER_NAME, f"{session.nickname} disconnected").serialize()
                )
            await self._broadcast_user_list()
        logger.info("Client disconnected: %s", session.name)

    async def on_line_received(self, session: ClientSession, line: str) -> None:
        async with self._registry.lock:
            if session.is_closed or session not in self._registry:
                return
            transition = self._state_machine.handle(session.auth_state, session.display_name, line)
            displaced = await self._apply(session, transition)
        if displaced:
            # The new session keeps reading while the old peer finishes its handshake
            task = asyncio.create_task(
                close_sessions(displaced),
                name=f"Closing {displaced[0].name}"
            )
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

    async def on_session_error(self, session: ClientSession, error: Exception) -> None:
        if isinstance(error, ConnectionError):
            logger.warning("Session %s: %s", session.name, error)
        else:
            logger.error("Session %s failed: %s", session.name, error, exc_info=error)

    # ==================== Internals ====================

    async def _apply(self, session: ClientSession, transition: Transition) -> List[ClientSession]:
        """
        Apply a transition; the registry lock must be held.

        Returns:
            Sessions to close once the lock is released
        """
        action = transition.action
        displaced: List[ClientSession] = []

        if action is AuthAction.GUEST:
            session.accept_as_guest()
            logger.info("Guest connected: %s", session.name)
        elif action is AuthAction.REJECT:
            logger.info("Invalid login attempt: %s", transition.login)
            await session.reject_auth()
        elif action is AuthAction.LOGIN:
            await session.accept_auth(transition.nickname)
            logger.info("%s authorized as %s", session.name, transition.nickname)
        elif action is AuthAction.TAKEOVER:
            old = transition.displaced
            old.mark_reconnecting()
            self._registry.remove(old)
            displaced.append(old)
            await session.accept_auth(transition.nickname)
            logger.info("%s reconnected from %s", transition.nickname, session.name)
        elif action is AuthAction.FORMAT_ERROR:
            await session.format_error(transition.line)

        for line in transition.broadcasts:
            await self._registry.broadcast(line)
        if transition.refresh_user_list:
            await self._broadcast_user_list()
        return displaced

    async def _broadcast_user_list(self) -> None:
        await self._registry.broadcast(UserList(self._registry.authorized_nicknames()).serialize())

    async def _on_session_evicted(self, session: ClientSession) -> None:
        logger.info("Authorization timeout, closing %s", session.name)


def create_server(
    credential_store: Optional[CredentialStore] = None,
    db_path: Optional[str] = None,
    **kwargs
) -> ChatServer:
    """
    Factory function to create a configured chat server.

    Args:
        credential_store: Credential backend (defaults to a SQLite store)
        db_path: SQLite file used when no backend is given
            (defaults to config.SQLITE_DB_FILE)
        **kwargs: Additional arguments passed to ChatServer

    Returns:
        Configured ChatServer instance
    """
    if credential_store is None:
        from RelayChat.core.server.storage_sqlite import SQLiteCredentialStore
        credential_store = SQLiteCredentialStore(db_path or config.SQLITE_DB_FILE)
    return ChatServer(credential_store, **kwargs)
