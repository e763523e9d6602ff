"""
Abstract base classes and interfaces for the server module.

This module defines the contracts between the chat server core and its
collaborators: the connection acceptor, the per-connection sessions, the
transport connection and the credential store. The core is written
against these contracts only, so every collaborator can be swapped (a
fake connection in tests, another credential backend in production).
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AsyncIterator, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from RelayChat.core.server.session import ClientSession


@runtime_checkable
class TransportConnection(Protocol):
    """Protocol for line-oriented transport connections."""

    @property
    def remote_address(self) -> str:
        """Printable ``host:port`` of the peer."""
        ...

    @abstractmethod
    async def send(self, line: str) -> bool:
        """Send one line; returns False instead of raising on a dead peer."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        ...

    @abstractmethod
    def is_open(self) -> bool:
        """Check if connection is open."""
        ...

    @abstractmethod
    def lines(self) -> AsyncIterator[str]:
        """
        Iterate over received lines until the peer goes away.

        Raises:
            ConnectionError: if the connection breaks abnormally
        """
        ...


@runtime_checkable
class CredentialStore(Protocol):
    """Protocol for credential lookup backends."""

    @abstractmethod
    def connect(self) -> None:
        """Open the backend."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Release the backend."""
        ...

    @abstractmethod
    def lookup_nickname(self, login: str, password: str) -> Optional[str]:
        """
        Resolve credentials to the nickname they identify.

        Args:
            login: Account login
            password: Clear text password

        Returns:
            Nickname, or None when the credentials do not match an account
        """
        ...


class AcceptorListener(ABC):
    """Callbacks fired by a connection acceptor."""

    @abstractmethod
    async def on_acceptor_start(self, acceptor) -> None:
        pass

    @abstractmethod
    async def on_acceptor_stop(self, acceptor) -> None:
        pass

    @abstractmethod
    async def on_listen_socket_created(self, acceptor) -> None:
        pass

    @abstractmethod
    async def on_accept_timeout(self, acceptor) -> None:
        """Heartbeat fired each time the bounded accept wait elapses."""
        pass

    @abstractmethod
    async def on_connection_accepted(self, acceptor, connection: TransportConnection) -> None:
        """
        Take ownership of a freshly accepted connection.

        Runs on the connection's own task for as long as the connection lives.
        """
        pass

    @abstractmethod
    async def on_acceptor_error(self, acceptor, error: Exception) -> None:
        pass


class SessionListener(ABC):
    """Callbacks fired by a client session over its lifetime."""

    @abstractmethod
    async def on_session_start(self, session: 'ClientSession') -> None:
        pass

    @abstractmethod
    async def on_session_ready(self, session: 'ClientSession') -> None:
        pass

    @abstractmethod
    async def on_session_stop(self, session: 'ClientSession') -> None:
        pass

    @abstractmethod
    async def on_line_received(self, session: 'ClientSession', line: str) -> None:
        pass

    @abstractmethod
    async def on_session_error(self, session: 'ClientSession', error: Exception) -> None:
        pass


class ServerLifecycle(ABC):
    """Abstract base class for server lifecycle management."""

    @abstractmethod
    async def start(self, port: Optional[int] = None, host: Optional[str] = None) -> None:
        """Start the server."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the server."""
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """Check if server is running."""
        pass


__all__ = [
    'TransportConnection',
    'CredentialStore',
    'AcceptorListener',
    'SessionListener',
    'ServerLifecycle',
]
