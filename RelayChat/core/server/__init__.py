"""
Server module for RelayChat.

Architecture Overview:
---------------------

The server is organized into the following components:

1. **Transport Layer** (`transport/`)
   - WebSocketConnection: Line-oriented connection wrapper
   - WebSocketAcceptor: Listening server with a bounded stop-wait loop

2. **Sessions** (`session/`)
   - ClientSession: One connection plus its authentication state
   - AuthState: UNAUTHORIZED / AUTHORIZED / RECONNECTING

3. **Registry** (`registry/`)
   - SessionRegistry: Ordered set of live sessions, its lock and broadcast

4. **Authentication** (`auth/`)
   - SessionStateMachine: Decides the transition for each received line
   - Transition / AuthAction: The effects the server applies

5. **Credential storage** (`storage_sqlite.py`)
   - SQLiteCredentialStore: bcrypt hashes in a SQLite file
   - InMemoryCredentialStore: Same contract, dict-backed

6. **Watchdog** (`watchdog.py`)
   - AuthWatchdog: Evicts sessions that never authenticate

7. **Chat server** (`chat_server.py`)
   - ChatServer: Main entry point that composes all components

Usage:

    from RelayChat.core.server import ChatServer, SQLiteCredentialStore

    server = ChatServer(SQLiteCredentialStore("relaychat.db"))

    async with server.run(port=8189):
        await server.wait_closed()
"""

from RelayChat.core.server.auth import (
    AuthAction,
    SessionStateMachine,
    Transition,
)
from RelayChat.core.server.chat_server import (
    ChatServer,
    create_server,
)
from RelayChat.core.server.exceptions import (
    RelayChatError,
    CredentialStoreError,
    ProtocolError,
)
from RelayChat.core.server.interfaces import (
    AcceptorListener,
    CredentialStore,
    ServerLifecycle,
    SessionListener,
    TransportConnection,
)
from RelayChat.core.server.registry import SessionRegistry
from RelayChat.core.server.session import (
    AuthState,
    ClientSession,
)
from RelayChat.core.server.storage_sqlite import (
    InMemoryCredentialStore,
    SQLiteCredentialStore,
)
from RelayChat.core.server.transport import (
    WebSocketAcceptor,
    WebSocketConnection,
)
from RelayChat.core.server.watchdog import AuthWatchdog

__all__ = [
    'AcceptorListener',
    'CredentialStore',
    'ServerLifecycle',
    'SessionListener',
    'TransportConnection',

    'RelayChatError',
    'CredentialStoreError',
    'ProtocolError',

    'AuthState',
    'ClientSession',
    'SessionRegistry',

    'AuthAction',
    'SessionStateMachine',
    'Transition',

    'InMemoryCredentialStore',
    'SQLiteCredentialStore',

    'WebSocketAcceptor',
    'WebSocketConnection',
    'AuthWatchdog',

    'ChatServer',
    'create_server',
]
