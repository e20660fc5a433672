"""Order details shown alongside tracking progress.

Details are descriptive (farm, farmer, delivery window, items) and are
stored separately from the ledger. Registering details never creates stage
history: progress still comes only from recorded events.
"""

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType

from farmtrack.domain.events import ensure_aware
from farmtrack.domain.stages import StageCatalog


@dataclass(frozen=True)
class OrderDetails:
    order_id: str
    farm_name: str
    farmer_name: str
    farm_location: str | None = None
    delivery_address: str | None = None
    expected_delivery: date | None = None
    delivery_slot: str | None = None
    items: tuple[str, ...] = ()
    # Planned time per stage id, shown next to stages not yet reached
    stage_expectations: Mapping[str, datetime] = field(default_factory=lambda: MappingProxyType({}))


class OrderDirectory:
    """Thread-safe registry of OrderDetails keyed by order id."""

    def __init__(self, catalog: StageCatalog):
        self._catalog = catalog
        self._details: dict[str, OrderDetails] = {}
        self._lock = threading.Lock()

    def put(
        self,
        order_id: str,
        farm_name: str,
        farmer_name: str,
        farm_location: str | None = None,
        delivery_address: str | None = None,
        expected_delivery: date | None = None,
        delivery_slot: str | None = None,
        items=(),
        stage_expectations: Mapping[str, datetime] | None = None,
    ) -> OrderDetails:
        """Create or replace the details for an order.

        Raises:
            ValueError: If order_id is blank
            StageNotFoundError: If an expectation names a stage not in the catalog
        """
        if not order_id or not order_id.strip():
            raise ValueError("order_id must be a non-empty string")

        expectations = {}
        for stage_id, expected_at in (stage_expectations or {}).items():
            self._catalog.stage_by_id(stage_id)
            expectations[stage_id] = ensure_aware(expected_at)

        details = OrderDetails(
            order_id=order_id,
            farm_name=farm_name,
            farmer_name=farmer_name,
            farm_location=farm_location,
            delivery_address=delivery_address,
            expected_delivery=expected_delivery,
            delivery_slot=delivery_slot,
            items=tuple(items),
            stage_expectations=MappingProxyType(expectations),
        )
        with self._lock:
            self._details[order_id] = details
        return details

    def get(self, order_id: str) -> OrderDetails | None:
        return self._details.get(order_id)

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._details

    def __len__(self) -> int:
        return len(self._details)
