"""
Registry of the active client sessions.

The registry is the single source of truth for who is connected. It is an
insertion-ordered set of sessions guarded by one ``asyncio.Lock``: the chat
server holds ``registry.lock`` around every sequence that reads and then
mutates registry state (authentication, disconnect, watchdog eviction), so
those sequences are atomic across concurrently running sessions.

The synchronous methods below never await, so each of them is atomic on the
event loop by itself; ``broadcast`` snapshots the membership before its first
await.
"""

import asyncio
import logging
from typing import Dict, Iterator, List, Optional

from RelayChat.core.message.protocol import DELIMITER
from RelayChat.core.server.session import ClientSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Insertion-ordered collection of sessions, unique by session identity.
    """

    def __init__(self):
        # dict keeps insertion order and gives O(1) add/remove
        self._sessions: Dict[ClientSession, None] = {}
        self.lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session: object) -> bool:
        return session in self._sessions

    def __iter__(self) -> Iterator[ClientSession]:
        return iter(self.snapshot())

    def add(self, session: ClientSession) -> None:
        """Register a session; adding it twice keeps its original position."""
        self._sessions.setdefault(session, None)
        logger.debug("Registered %s (total: %d)", session.name, len(self._sessions))

    def remove(self, session: ClientSession) -> bool:
        """
        Unregister a session.

        Returns:
            True if the session was registered
        """
        if session not in self._sessions:
            return False
        del self._sessions[session]
        logger.debug("Unregistered %s (total: %d)", session.name, len(self._sessions))
        return True

    def snapshot(self) -> List[ClientSession]:
        """Registered sessions in insertion order, as of now."""
        return list(self._sessions)

    def authorized_nicknames(self) -> List[str]:
        return [s.nickname for s in self._sessions if s.is_authorized()]

    def list_nicknames(self) -> str:
        """
        Authorized nicknames in registry order, each followed by the delimiter.

        ``"Alice|Bob|"`` for two users, ``""`` when nobody is logged in.
        """
        return "".join(name + DELIMITER for name in self.authorized_nicknames())

    def find_by_nickname(self, nickname: str) -> Optional[ClientSession]:
        """First AUTHORIZED session using ``nickname``, if any."""
        for session in self._sessions:
            if session.is_authorized() and session.nickname == nickname:
                return session
        return None

    def expired_unauthorized(self) -> List[ClientSession]:
        """Unauthorized sessions, guests included, past their auth deadline."""
        return [
            s for s in self._sessions
            if not s.is_authorized() and s.is_auth_deadline_expired()
        ]

    async def broadcast(self, line: str) -> int:
        """
        Send a line to every session registered at call time.

        Sessions added after the call started are skipped; sessions that close
        mid-broadcast simply fail their send.

        Returns:
            Number of sessions the line was delivered to
        """
        delivered = 0
        for session in self.snapshot():
            try:
                if await session.send(line):
                    delivered += 1
            except Exception as e:
                logger.warning("Broadcast to %s failed: %s", session.name, e)
        return delivered


__all__ = [
    'SessionRegistry',
]
