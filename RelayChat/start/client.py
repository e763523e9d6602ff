"""
Client startup module for RelayChat application.
Provides a minimal line client: stdin lines are sent as they are typed,
server lines are printed.
"""

import asyncio

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed

from RelayChat.config import config
from RelayChat.core.message.protocol import (
    MessageType,
    parse_user_list,
    split_fields,
)

__all__ = ['client', 'render_line']


def render_line(line: str) -> str:
    """Turn a server line into something readable."""
    fields = split_fields(line)
    tag = fields[0]
    if tag == MessageType.BCAST.value and len(fields) >= 3:
        return f"{fields[1]}: {fields[2]}"
    if tag == MessageType.USERLIST.value:
        return "Online: " + ", ".join(parse_user_list(line))
    if tag == MessageType.AUTH_OK.value and len(fields) >= 2:
        return f"Logged in as {fields[1]}"
    if tag == MessageType.AUTH_FAIL.value:
        return "Login failed"
    if tag == MessageType.FMT_ERR.value:
        return f"Server did not understand: {line[len(tag) + 1:]}"
    return line


async def _receive(websocket) -> None:
    try:
        async for message in websocket:
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            print(render_line(message))
    except ConnectionClosed:
        pass
    print("Disconnected.")


async def _run(host: str, port: int) -> None:
    async with connect(f"ws://{host}:{port}") as websocket:
        receiver = asyncio.create_task(_receive(websocket))
        try:
            while not receiver.done():
                try:
                    line = await asyncio.to_thread(input)
                except EOFError:
                    break
                if receiver.done():
                    break
                await websocket.send(line)
        finally:
            await websocket.close()
            await receiver


def client(host=None, port=None):
    """
    Start the chat client.

    Args:
        host (str): Server hostname to connect to (default: config.DEFAULT_HOST)
        port (int): Server port number (default: config.DEFAULT_SERVER_PORT)
    """
    host = host or config.DEFAULT_HOST
    port = port or config.DEFAULT_SERVER_PORT
    print("Welcome RelayChat Client!")
    print(f"Current setting: server={host}:{port}")
    print("Send 'GUEST' to join anonymously or 'AUTH|login|password' to log in, "
          "then 'BCAST|text' to chat.")
    try:
        asyncio.run(_run(host, port))
    except KeyboardInterrupt:
        print("Connect reseted.")
    except OSError as e:
        print(f"Failed to connect: {e}")
