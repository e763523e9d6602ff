"""
Server startup module for RelayChat application.
Provides the entry point for starting the chat server.
"""

import asyncio
from typing import Optional

from RelayChat.config import config
from RelayChat.core.logging import auto_configure, get_logger, get_logging_manager
from RelayChat.core.server import SQLiteCredentialStore, create_server

logger = get_logger(__name__)


def server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    db_path: Optional[str] = None,
    auth_timeout: Optional[float] = None,
    log_level: Optional[str] = None
):
    """
    Start the chat server and serve until interrupted.

    Args:
        host (str): Host to bind to (default: config.DEFAULT_HOST)
        port (int): Port number to listen on (default: config.DEFAULT_SERVER_PORT)
        db_path (str): Credential database file (default: config.SQLITE_DB_FILE)
        auth_timeout (float): Seconds a client may stay unauthorized
        log_level (str): Overrides the configured log level
    """
    auto_configure()
    if log_level:
        get_logging_manager().set_level(log_level)

    chat_server = create_server(db_path=db_path, host=host, auth_timeout=auth_timeout)

    async def serve():
        async with chat_server.run(port=port):
            await chat_server.wait_closed()

    logger.info("Starting chat server, credentials in %s", chat_server.credential_store.db_path)
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        print("Closed by user.")


def adduser(login: str, password: str, nickname: str, db_path: Optional[str] = None) -> bool:
    """
    Register an account in the credential database.

    Returns:
        True if the account was created
    """
    store = SQLiteCredentialStore(db_path or config.SQLITE_DB_FILE)
    store.connect()
    try:
        if store.user_exists(login):
            print(f"Login '{login}' already exists.")
            return False
        created = store.add_user(login, password, nickname)
    finally:
        store.disconnect()
    if created:
        print(f"User '{login}' added as '{nickname}'.")
    else:
        print(f"Nickname '{nickname}' already exists.")
    return created
