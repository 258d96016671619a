"""
Change notification channel between a record store and its sync loop.

A signal carries no payload; it only means "remote state may have changed,
re-fetch". Signals coalesce per subscriber.
"""

import asyncio
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)


class ChangeSubscription:
    """One subscriber's view of a ChangeFeed."""

    def __init__(self, feed: 'ChangeFeed'):
        self._feed = feed
        self._event = asyncio.Event()
        self._closed = False

    def notify(self) -> None:
        self._event.set()

    @property
    def pending(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the next signal and consume it.

        Args:
            timeout: Seconds to wait; None waits forever

        Returns:
            True if a signal was consumed, False on timeout or close
        """
        if self._closed:
            return False
        try:
            if timeout is None:
                await self._event.wait()
            else:
                await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        self._event.clear()
        return not self._closed

    def close(self) -> None:
        self._closed = True
        self._feed._unsubscribe(self)
        # wake any waiter so it observes the close
        self._event.set()

    def __aiter__(self):
        return self

    async def __anext__(self) -> None:
        if not await self.wait():
            raise StopAsyncIteration


class ChangeFeed:
    """Fan-out of payload-less change signals."""

    def __init__(self):
        self._subscribers: List[ChangeSubscription] = []
        self.published_count = 0

    def subscribe(self) -> ChangeSubscription:
        subscription = ChangeSubscription(self)
        self._subscribers.append(subscription)
        return subscription

    def publish(self) -> None:
        """Signal all subscribers. Safe to call from synchronous callbacks."""
        self.published_count += 1
        logger.debug(f"Change signal #{self.published_count} to {len(self._subscribers)} subscriber(s)")
        for subscription in list(self._subscribers):
            subscription.notify()

    def _unsubscribe(self, subscription: ChangeSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def __len__(self) -> int:
        return len(self._subscribers)
