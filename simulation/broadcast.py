"""
Broadcast fan-out of post-tick state to subscribers.

Each subscriber owns a bounded queue. publish() never blocks: when a
subscriber falls behind, its oldest queued message is dropped.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from simulation.metrics import SUBSCRIBER_ERRORS

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 16


class Subscription:
    """One subscriber's view of the broadcast stream."""

    def __init__(self, broadcaster: "Broadcaster", token: int, maxsize: int = DEFAULT_QUEUE_SIZE):
        self._broadcaster = broadcaster
        self.token = token
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def deliver(self, message: Dict[str, Any]) -> None:
        """Enqueue without waiting, evicting the oldest message if full."""
        if self.closed:
            return
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
            if self.dropped == 1 or self.dropped % 100 == 0:
                logger.warning(f"Subscriber {self.token} is behind, {self.dropped} messages dropped")
        self.queue.put_nowait(message)

    async def get(self) -> Dict[str, Any]:
        return await self.queue.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._broadcaster.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Dict[str, Any]:
        if self.closed:
            raise StopAsyncIteration
        return await self.get()


class Broadcaster:
    """Registry of subscriptions; delivers each published message to all of them."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscriptions: Dict[int, Subscription] = {}
        self._next_token = 0

    def subscribe(self, initial: Optional[Dict[str, Any]] = None) -> Subscription:
        """
        Register a subscriber.

        Args:
            initial: Message queued ahead of any later publish, so a new
                subscriber starts from a full snapshot.
        """
        self._next_token += 1
        subscription = Subscription(self, self._next_token, self.queue_size)
        if initial is not None:
            subscription.deliver(initial)
        self._subscriptions[subscription.token] = subscription
        logger.info(f"Subscriber {subscription.token} added. Total subscribers: {len(self._subscriptions)}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscriptions.pop(subscription.token, None) is not None:
            subscription.closed = True
            logger.info(f"Subscriber {subscription.token} removed. Total subscribers: {len(self._subscriptions)}")

    def publish(self, message: Dict[str, Any]) -> int:
        """Deliver message to every subscriber. Returns how many received it."""
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            try:
                subscription.deliver(message)
                delivered += 1
            except Exception as e:
                SUBSCRIBER_ERRORS.inc()
                logger.warning(f"Dropping subscriber {subscription.token}: {e}")
                self.unsubscribe(subscription)
        return delivered

    def __len__(self) -> int:
        return len(self._subscriptions)
