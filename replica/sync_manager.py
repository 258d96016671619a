"""
Background sync manager.

Runs a background task that re-syncs the session whenever the record store
signals a change, when the app asks for it, and every sync interval.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from common.constants import SYNC_INTERVAL_SECONDS
from record_store.change_feed import ChangeFeed, ChangeSubscription

logger = logging.getLogger(__name__)


class SyncManager:
    """
    Manages periodic and signal-driven sync passes.

    Signals arriving while a pass runs coalesce into a single follow-up pass.
    """

    def __init__(
        self,
        sync_fn: Callable[[], Awaitable[object]],
        feed: ChangeFeed,
        interval: float = SYNC_INTERVAL_SECONDS,
    ):
        """
        Initialize the sync manager.

        Args:
            sync_fn: Coroutine function running one full sync pass
            feed: Change feed the record store publishes to
            interval: Seconds between passes when no signal arrives
        """
        self.sync_fn = sync_fn
        self.feed = feed
        self.interval = interval
        self.task: Optional[asyncio.Task] = None
        self.running = False
        self.passes = 0
        self._subscription: Optional[ChangeSubscription] = None

    async def start(self):
        """Start the sync background task."""
        if self.running:
            logger.warning("Sync manager already running")
            return

        self.running = True
        self._subscription = self.feed.subscribe()
        self.task = asyncio.create_task(self._sync_loop())
        logger.info(f"Sync manager started [interval={self.interval}s]")

    async def stop(self):
        """Stop the sync background task."""
        if not self.running:
            return

        self.running = False

        if self._subscription:
            self._subscription.close()
            self._subscription = None

        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None

        logger.info("Sync manager stopped")

    def request_sync(self) -> bool:
        """
        Ask for a pass as soon as possible (app became active, user asked).

        Returns:
            False if the manager is not running and the request was dropped
        """
        if self._subscription is None:
            logger.debug("Sync requested while the sync manager is stopped, ignoring")
            return False
        self._subscription.notify()
        return True

    async def _sync_loop(self):
        """
        Main sync loop.

        Waits for a change signal or the interval to elapse, then runs a pass.
        """
        while self.running:
            signalled = await self._subscription.wait(timeout=self.interval)
            if not self.running:
                break
            try:
                logger.debug(f"Sync pass triggered by {'change signal' if signalled else 'interval'}")
                await self.sync_fn()
                self.passes += 1
            except Exception as e:
                logger.error(f"Error in sync pass: {e}", exc_info=True)
