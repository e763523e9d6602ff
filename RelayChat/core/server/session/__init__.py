"""
Session module for the server.

A ClientSession is one live connection plus its authentication state.
It drives its listener through the connection's lifetime and exposes the
operations the chat server needs to move it through the auth state machine.
"""

import asyncio
import logging
import time
from enum import Enum, auto
from typing import Iterable, Optional

from RelayChat.core.message.protocol import (
    GUEST_NAME,
    AuthAccepted,
    AuthRejected,
    FormatError,
)
from RelayChat.core.server.interfaces import SessionListener, TransportConnection

logger = logging.getLogger(__name__)


class AuthState(Enum):
    """Authentication state of a session."""
    UNAUTHORIZED = auto()
    AUTHORIZED = auto()
    RECONNECTING = auto()


class ClientSession:
    """
    One client connection and its identity.

    The nickname is set if and only if the session is AUTHORIZED.
    """

    def __init__(
        self,
        listener: SessionListener,
        name: str,
        connection: TransportConnection,
        auth_timeout: float,
        clock=time.monotonic
    ):
        """
        Initialize a session in the UNAUTHORIZED state.

        Args:
            listener: Receiver of the lifecycle callbacks
            name: Session name, used as its task name in logs
            connection: Underlying transport connection
            auth_timeout: Seconds the session may stay unauthorized
            clock: Monotonic time source
        """
        self._listener = listener
        self.name = name
        self._connection = connection
        self._clock = clock
        self.auth_state = AuthState.UNAUTHORIZED
        self._nickname: Optional[str] = None
        self._guest = False
        self._closed = False
        self.joined_at: float = clock()
        self.auth_deadline: float = auth_timeout

    def __repr__(self) -> str:
        return f"<ClientSession {self.name} {self.auth_state.name} nickname={self._nickname!r}>"

    @property
    def connection(self) -> TransportConnection:
        return self._connection

    @property
    def nickname(self) -> Optional[str]:
        return self._nickname

    @property
    def display_name(self) -> str:
        """Name shown as the sender of this session's chat lines."""
        return self._nickname if self._nickname is not None else GUEST_NAME

    @property
    def is_closed(self) -> bool:
        return self._closed

    def is_authorized(self) -> bool:
        return self.auth_state is AuthState.AUTHORIZED

    def is_reconnecting(self) -> bool:
        return self.auth_state is AuthState.RECONNECTING

    def is_guest(self) -> bool:
        return self._guest

    def is_auth_deadline_expired(self) -> bool:
        """True once the session has spent longer than its deadline connected."""
        return self._clock() - self.joined_at > self.auth_deadline

    async def run(self) -> None:
        """
        Drive the session until the connection ends.

        Fires start and ready, one ``on_line_received`` per line, then stop.
        Errors are reported to the listener and end the session.
        """
        try:
            await self._listener.on_session_start(self)
            await self._listener.on_session_ready(self)
            async for line in self._connection.lines():
                await self._listener.on_line_received(self, line)
        except Exception as e:
            await self._listener.on_session_error(self, e)
        finally:
            await self.close()
            await self._listener.on_session_stop(self)

    async def send(self, line: str) -> bool:
        if self._closed:
            return False
        return await self._connection.send(line)

    async def close(self) -> None:
        """Close the connection; later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._connection.close()
        except Exception as e:
            logger.debug("Error closing %s: %s", self.name, e)

    async def accept_auth(self, nickname: str) -> None:
        self.auth_state = AuthState.AUTHORIZED
        self._nickname = nickname
        self._guest = False
        await self.send(AuthAccepted(nickname).serialize())

    async def reject_auth(self) -> None:
        await self.send(AuthRejected().serialize())

    def accept_as_guest(self) -> None:
        """Admit the session without credentials; it stays UNAUTHORIZED."""
        self._guest = True

    def mark_reconnecting(self) -> None:
        """Terminal state for a session superseded by a newer login."""
        self.auth_state = AuthState.RECONNECTING
        self._nickname = None

    async def format_error(self, line: str) -> None:
        await self.send(FormatError(line).serialize())


async def close_sessions(sessions: Iterable[ClientSession]) -> None:
    """Close sessions concurrently; never call it with the registry lock held."""
    await asyncio.gather(*(session.close() for session in sessions))


__all__ = [
    'AuthState',
    'ClientSession',
    'close_sessions',
]
