"""
Server integration tests for RelayChat over real WebSocket connections.

Tests include:
- Server startup on a free port
- Authentication flow
- Message relaying between clients
- Disconnect notices
- Shutdown closing every client

Run with: python -m pytest RelayChat/test/test_server_integration.py -v
"""

import asyncio

import pytest
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed

from RelayChat.core.server.transport import format_address


async def recv_until(ws, expected: str, timeout: float = 5.0) -> list:
    """Collect lines until ``expected`` arrives."""
    received = []

    async def collect():
        while True:
            line = await ws.recv()
            received.append(line)
            if line == expected:
                return

    await asyncio.wait_for(collect(), timeout)
    return received


class TestServerInitialization:
    """Tests for server initialization and startup."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_server_starts_successfully(self, running_server):
        assert running_server.is_running is True
        assert running_server.port

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_server_accepts_connections(self, running_server, test_config):
        async with connect(test_config.ws_url(running_server.port)) as ws:
            await ws.send("GUEST")
            assert await recv_until(ws, "BCAST|Server|Anonymous connected")
            assert len(running_server.registry) == 1


class TestChatFlow:
    """Authentication and relaying between real clients."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_login_and_chat(self, running_server, test_config):
        url = test_config.ws_url(running_server.port)
        async with connect(url) as guest, connect(url) as alice:
            await guest.send("GUEST")
            await recv_until(guest, "BCAST|Server|Anonymous connected")

            await alice.send("AUTH|alice|pw1")
            await recv_until(alice, "AUTH_OK|Alice")
            await recv_until(guest, "USERLIST|Alice|")

            await alice.send("BCAST|hello")
            await recv_until(guest, "BCAST|Alice|hello")
            await recv_until(alice, "BCAST|Alice|hello")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_bad_password(self, running_server, test_config):
        async with connect(test_config.ws_url(running_server.port)) as ws:
            await ws.send("AUTH|alice|wrong")
            assert (await ws.recv()) == "AUTH_FAIL"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_departure_is_announced(self, running_server, test_config):
        url = test_config.ws_url(running_server.port)
        async with connect(url) as bob:
            await bob.send("AUTH|bob|pw2")
            await recv_until(bob, "USERLIST|Bob|")

            async with connect(url) as alice:
                await alice.send("AUTH|alice|pw1")
                await recv_until(bob, "USERLIST|Bob|Alice|")

            received = await recv_until(bob, "USERLIST|Bob|")
            assert "BCAST|Server|Alice disconnected" in received

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_session_tasks_named_after_peer(self, running_server, test_config):
        async with connect(test_config.ws_url(running_server.port)) as ws:
            await ws.send("GUEST")
            await recv_until(ws, "BCAST|Server|Anonymous connected")
            local = format_address(ws.local_address)

            names = {task.get_name() for task in asyncio.all_tasks()}
            assert f"SocketThread {local}" in names
            assert "Chat server" in names


class TestShutdown:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stop_closes_clients(self, credential_store, test_config):
        from RelayChat.core.server.chat_server import ChatServer

        server = ChatServer(credential_store, host=test_config.host, accept_timeout=test_config.accept_timeout)
        await server.start(port=0)
        async with connect(test_config.ws_url(server.port)) as ws:
            await ws.send("AUTH|alice|pw1")
            await recv_until(ws, "USERLIST|Alice|")

            await asyncio.wait_for(server.stop(), test_config.timeout)

            with pytest.raises(ConnectionClosed):
                await asyncio.wait_for(ws.recv(), test_config.timeout)

        assert not server.is_running
        assert len(server.registry) == 0
