"""
Watchdog evicting sessions that never authenticate.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from RelayChat.core.server.registry import SessionRegistry
from RelayChat.core.server.session import ClientSession, close_sessions

logger = logging.getLogger(__name__)


class AuthWatchdog:
    """
    Periodically closes unauthorized sessions past their auth deadline.

    Guests are unauthorized too and are evicted the same way. Each scan runs
    under the registry lock, so it never interleaves with an authentication
    in progress.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        check_interval: float = 1.0,
        on_evict: Optional[Callable[[ClientSession], Awaitable[None]]] = None
    ):
        """
        Initialize the watchdog.

        Args:
            registry: Registry to scan
            check_interval: Seconds between two scans
            on_evict: Coroutine called for each evicted session, lock held
        """
        self._registry = registry
        self._check_interval = check_interval
        self._on_evict = on_evict
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the watchdog loop on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._monitor_loop(), name="Auth watchdog")
        logger.debug("Auth watchdog started")

    async def stop(self) -> None:
        """Stop the watchdog loop."""
        task, self._task = self._task, None
        if task is None:
            return
        if task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Auth watchdog stopped")

    async def _monitor_loop(self) -> None:
        while True:
            try:
                await self.check_sessions()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Error in auth watchdog: %s", e)
            await asyncio.sleep(self._check_interval)

    async def check_sessions(self) -> List[ClientSession]:
        """
        Run one scan.

        Expired sessions are unregistered under the registry lock and closed
        after it is released.

        Returns:
            Sessions evicted by this scan
        """
        async with self._registry.lock:
            expired = self._registry.expired_unauthorized()
            for session in expired:
                self._registry.remove(session)
                if self._on_evict is not None:
                    await self._on_evict(session)
        # Stopping the watchdog must not abandon a close halfway
        await asyncio.shield(close_sessions(expired))
        return expired


__all__ = [
    'AuthWatchdog',
]
