"""
List-changed notification fan-out.

The notifier owns the set of subscribers. Each subscriber is an asyncio
queue bound to the event loop of the session that created it; events are
scheduled onto that loop with ``call_soon_threadsafe`` so registrations
made from worker threads are delivered safely and ``notify`` never waits
for delivery.
"""

import asyncio
import threading
import uuid
from typing import List, Optional

from .logging_config import get_logger
from .models import CapabilityKind, ListChangedEvent

logger = get_logger('notifier')


class Subscription:
    """
    Handle for one subscriber, usually one connected client session.

    Events can be consumed with ``await subscription.get()`` or with
    ``async for event in subscription``.
    """

    def __init__(self, notifier: "ChangeNotifier", loop: asyncio.AbstractEventLoop):
        self.subscription_id = str(uuid.uuid4())
        self._notifier = notifier
        self._loop = loop
        self._queue: "asyncio.Queue[ListChangedEvent]" = asyncio.Queue()
        self.closed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def pending(self) -> int:
        """Number of events delivered but not consumed yet."""
        return self._queue.qsize()

    def _deliver(self, event: ListChangedEvent) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    async def get(self) -> Optional[ListChangedEvent]:
        """Wait for the next event. Returns None once the subscription is closed."""
        return await self._queue.get()

    def close(self) -> None:
        """Stop receiving events and wake up any pending consumer."""
        if self.closed:
            return
        self.closed = True
        self._notifier.unsubscribe(self)
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            pass  # loop closed, nobody is waiting

    def __aiter__(self):
        return self

    async def __anext__(self) -> ListChangedEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def __repr__(self) -> str:
        return f"Subscription(id={self.subscription_id[:8]}, pending={self.pending})"


class ChangeNotifier:
    """Tracks subscribers and emits list-changed events to every one of them."""

    def __init__(self):
        self._subscribers: List[Subscription] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscription:
        """
        Register a new subscriber.

        Args:
            loop: Event loop on which events are delivered. Defaults to the
                running loop, so this must be called from a coroutine when
                no loop is passed.
        """
        subscription = Subscription(self, loop or asyncio.get_running_loop())
        with self._lock:
            self._subscribers.append(subscription)
        logger.debug(f"Subscriber {subscription.subscription_id} added")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)
                logger.debug(f"Subscriber {subscription.subscription_id} removed")

    def notify(self, event: ListChangedEvent) -> None:
        """
        Enqueue ``event`` for every current subscriber.

        Returns before delivery; safe to call from any thread.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription._deliver, event)
            except RuntimeError:
                # Loop already closed: the session is gone
                logger.debug(
                    f"Dropping subscriber {subscription.subscription_id}: event loop is closed"
                )
                self.unsubscribe(subscription)

        logger.debug(
            f"Queued {event.kind.value} list-changed event for {len(subscribers)} subscriber(s)"
        )

    def notify_tools_changed(self) -> None:
        self.notify(ListChangedEvent(CapabilityKind.TOOL))
