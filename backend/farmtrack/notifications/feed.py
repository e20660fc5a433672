"""In-process subscription feed for UI clients.

Two ways to consume StageAdvanced facts:
- polling: recent(order_id, after=seq) returns the bounded per-order history
- streaming: subscribe() returns an asyncio.Queue fed as facts arrive

notify() may be called from any thread; delivery into a subscriber's queue
always happens on the subscriber's own event loop.
"""

import asyncio
import itertools
import threading
from collections import deque
from dataclasses import dataclass, field

import structlog

from farmtrack.domain.events import StageAdvanced

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FeedItem:
    seq: int
    fact: StageAdvanced


@dataclass(eq=False)
class Subscription:
    """A live subscriber. order_id=None receives facts for every order."""

    order_id: str | None
    queue: asyncio.Queue
    loop: asyncio.AbstractEventLoop = field(repr=False)

    def matches(self, fact: StageAdvanced) -> bool:
        return self.order_id is None or self.order_id == fact.order_id


class SubscriptionFeed:
    def __init__(self, queue_size: int = 100, history_size: int = 50):
        self._queue_size = queue_size
        self._history_size = history_size
        self._seq = itertools.count(1)
        self._history: dict[str, deque[FeedItem]] = {}
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def notify(self, fact: StageAdvanced) -> None:
        with self._lock:
            item = FeedItem(seq=next(self._seq), fact=fact)
            history = self._history.setdefault(fact.order_id, deque(maxlen=self._history_size))
            history.append(item)
            targets = [s for s in self._subscriptions if s.matches(fact)]

        for sub in targets:
            if sub.loop.is_closed():
                continue
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is sub.loop:
                self._deliver(sub, item)
            else:
                sub.loop.call_soon_threadsafe(self._deliver, sub, item)

    def _deliver(self, sub: Subscription, item: FeedItem) -> None:
        try:
            sub.queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning("subscriber_queue_full", order_id=item.fact.order_id, seq=item.seq)

    def recent(self, order_id: str, after: int = 0) -> list[FeedItem]:
        """Retained facts for an order with seq > after, oldest first."""
        with self._lock:
            history = list(self._history.get(order_id, ()))
        return [item for item in history if item.seq > after]

    def subscribe(self, order_id: str | None = None) -> Subscription:
        """Register a subscriber. Must be called from within a running event loop."""
        sub = Subscription(
            order_id=order_id,
            queue=asyncio.Queue(maxsize=self._queue_size),
            loop=asyncio.get_running_loop(),
        )
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)
