"""
Test configuration and fixtures for RelayChat server tests.

Provides:
- Server configuration for testing
- In-process fake connections driving the chat server without sockets
- Credential store fixtures
- Test fixtures for pytest
"""

import asyncio
from dataclasses import dataclass
from typing import Generator, List, Optional

import pytest
import pytest_asyncio

from RelayChat.core.server.chat_server import ChatServer
from RelayChat.core.server.storage_sqlite import InMemoryCredentialStore, SQLiteCredentialStore


@dataclass
class ServerTestConfig:
    """Configuration for server tests."""
    host: str = "127.0.0.1"
    timeout: float = 5.0
    accept_timeout: float = 0.05
    auth_timeout: float = 120.0
    watchdog_interval: float = 0.05
    hash_rounds: int = 4

    def ws_url(self, port: int) -> str:
        return f"ws://{self.host}:{port}"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """
    In-memory TransportConnection.

    Lines fed with ``feed`` come out of ``lines``; lines the server sends are
    collected in ``sent``.
    """

    def __init__(self, remote_address: str = "127.0.0.1:50000"):
        self.remote_address = remote_address
        self.sent: List[str] = []
        self.closed = False
        self.close_count = 0
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, line: str) -> bool:
        if self.closed:
            return False
        self.sent.append(line)
        return True

    async def close(self) -> None:
        self.close_count += 1
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)

    def is_open(self) -> bool:
        return not self.closed

    def feed(self, line: str) -> None:
        self._inbox.put_nowait(line)

    def hang_up(self) -> None:
        """Peer closes the connection cleanly."""
        self._inbox.put_nowait(None)

    def fail(self, error: Exception) -> None:
        """Connection breaks with ``error``."""
        self._inbox.put_nowait(error)

    def clear(self) -> None:
        self.sent.clear()

    async def lines(self):
        while True:
            item = await self._inbox.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item


class StuckCloseConnection(FakeConnection):
    """Connection whose close handshake hangs until ``release`` is set."""

    def __init__(self, remote_address: str = "127.0.0.1:50000"):
        super().__init__(remote_address)
        self.release = asyncio.Event()
        self.close_started = False

    async def close(self) -> None:
        self.close_started = True
        await self.release.wait()
        await super().close()


async def settle(rounds: int = 50) -> None:
    """Let every runnable task progress until the loop is quiet."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll ``predicate`` until it holds, failing the test after ``timeout``."""
    async def poll():
        while not predicate():
            await asyncio.sleep(interval)

    await asyncio.wait_for(poll(), timeout)


class ChatHarness:
    """Connects fake clients straight to a ChatServer's acceptor hook."""

    def __init__(self, server: ChatServer):
        self.server = server
        self.tasks: List[asyncio.Task] = []
        self._next_port = 50000

    async def connect(self, connection: Optional[FakeConnection] = None) -> FakeConnection:
        if connection is None:
            connection = FakeConnection(f"127.0.0.1:{self._next_port}")
            self._next_port += 1
        remote_address = connection.remote_address
        task = asyncio.create_task(
            self.server.on_connection_accepted(None, connection),
            name=f"SocketThread {remote_address}"
        )
        self.tasks.append(task)
        await settle()
        return connection

    async def send(self, connection: FakeConnection, line: str) -> None:
        connection.feed(line)
        await settle()

    async def login(self, login: str, password: str) -> FakeConnection:
        connection = await self.connect()
        await self.send(connection, f"AUTH|{login}|{password}")
        return connection

    async def shutdown(self) -> None:
        for task in self.tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)


@pytest.fixture(scope="session")
def test_config() -> ServerTestConfig:
    """Provide test configuration."""
    return ServerTestConfig()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credential_store(test_config: ServerTestConfig) -> InMemoryCredentialStore:
    """Accounts alice/pw1 -> Alice and bob/pw2 -> Bob."""
    return InMemoryCredentialStore(
        {
            "alice": ("pw1", "Alice"),
            "bob": ("pw2", "Bob"),
        },
        hash_rounds=test_config.hash_rounds
    )


@pytest.fixture
def sqlite_store(tmp_path, test_config: ServerTestConfig) -> Generator[SQLiteCredentialStore, None, None]:
    """Connected SQLite store in a temporary directory."""
    store = SQLiteCredentialStore(str(tmp_path / "users.db"), hash_rounds=test_config.hash_rounds)
    store.connect()
    yield store
    store.disconnect()


@pytest.fixture
def chat_server(credential_store, fake_clock, test_config: ServerTestConfig) -> ChatServer:
    """Server that is not listening; clients are attached through ChatHarness."""
    credential_store.connect()
    return ChatServer(
        credential_store,
        host=test_config.host,
        auth_timeout=test_config.auth_timeout,
        accept_timeout=test_config.accept_timeout,
        watchdog_interval=test_config.watchdog_interval,
        clock=fake_clock
    )


@pytest_asyncio.fixture
async def harness(chat_server: ChatServer):
    """Harness around ``chat_server``; cancels leftover sessions afterwards."""
    chat_harness = ChatHarness(chat_server)
    yield chat_harness
    await chat_harness.shutdown()


@pytest_asyncio.fixture
async def running_server(credential_store, test_config: ServerTestConfig):
    """Chat server listening on a free local port."""
    server = ChatServer(
        credential_store,
        host=test_config.host,
        accept_timeout=test_config.accept_timeout,
        watchdog_interval=test_config.watchdog_interval
    )
    await server.start(port=0)
    yield server
    await server.stop()


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
