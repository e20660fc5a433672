"""TrackingService: wires catalog, ledger, projector, and notification boundary.

One instance per process, created at startup. Route handlers reach the
ledger and projector only through this object.
"""

from datetime import datetime

from farmtrack.domain.events import AppendResult, StageEvent
from farmtrack.domain.orders import OrderDetails, OrderDirectory
from farmtrack.domain.progress import ProgressProjector, ProgressSnapshot
from farmtrack.domain.stages import StageCatalog
from farmtrack.ledger.stage_ledger import StageLedger
from farmtrack.notifications import (
    FeedItem,
    LoggingNotifier,
    NotificationHub,
    StageNotifier,
    SubscriptionFeed,
)


class TrackingService:
    def __init__(
        self,
        catalog: StageCatalog,
        feed: SubscriptionFeed | None = None,
        notifiers: list[StageNotifier] | None = None,
    ):
        self.catalog = catalog
        self.feed = feed or SubscriptionFeed()
        self.hub = NotificationHub([LoggingNotifier(), self.feed, *(notifiers or [])])
        self.ledger = StageLedger(catalog, notifier=self.hub)
        self.projector = ProgressProjector(self.ledger, catalog)
        self.orders = OrderDirectory(catalog)

    def append_event(
        self,
        order_id: str,
        stage_id: str,
        occurred_at: datetime,
        location: str | None = None,
        notes: str | None = None,
        photo_refs: list[str] | None = None,
    ) -> AppendResult:
        return self.ledger.append_event(
            order_id,
            stage_id,
            occurred_at,
            location=location,
            notes=notes,
            photo_refs=photo_refs,
        )

    def events_for_order(self, order_id: str) -> tuple[StageEvent, ...]:
        return self.ledger.events_for_order(order_id)

    def latest_event(self, order_id: str) -> StageEvent | None:
        return self.ledger.latest_event(order_id)

    def register_order(self, order_id: str, **fields) -> OrderDetails:
        """Create or replace descriptive details for an order. Stage history is untouched."""
        return self.orders.put(order_id, **fields)

    def order_details(self, order_id: str) -> OrderDetails | None:
        return self.orders.get(order_id)

    def project(self, order_id: str) -> ProgressSnapshot | None:
        details = self.orders.get(order_id)
        expected = details.stage_expectations if details else None
        return self.projector.project(order_id, expected)

    def recent_advances(self, order_id: str, after: int = 0) -> list[FeedItem]:
        return self.feed.recent(order_id, after=after)
