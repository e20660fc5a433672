"""Idempotent seed data for the demo order.

Replays the farm updates shown on the tracking page for order FTO-2024-001
through the ledger, so the demo goes through the same validation as real
events. Re-running is harmless: repeats are deduplicated.
"""

from datetime import date, datetime, timedelta, timezone

import structlog

from farmtrack.services.tracking_service import TrackingService

logger = structlog.get_logger(__name__)

DEMO_ORDER_ID = "FTO-2024-001"

# Karnataka farm times
_IST = timezone(timedelta(hours=5, minutes=30))

DEMO_EVENTS = [
    {
        "stage_id": "sowing",
        "occurred_at": datetime(2024, 6, 1, 9, 0, tzinfo=_IST),
        "location": "Green Valley Farm, Plot A-12",
        "notes": "Organic vegetable seeds planted with natural fertilizers",
    },
    {
        "stage_id": "growing",
        "occurred_at": datetime(2024, 6, 15, 10, 30, tzinfo=_IST),
        "location": "Green Valley Farm",
        "notes": "Regular watering and organic pest control applied",
    },
    {
        "stage_id": "harvesting",
        "occurred_at": datetime(2024, 7, 10, 7, 0, tzinfo=_IST),
        "location": "Green Valley Farm",
    },
]

DEMO_DETAILS = {
    "farm_name": "Green Valley Organic Farm",
    "farmer_name": "Rajesh Kumar",
    "farm_location": "Karnataka, India",
    "delivery_address": "123 Green Street, Eco Colony",
    "expected_delivery": date(2024, 7, 15),
    "delivery_slot": "Morning (9 AM - 12 PM)",
    "items": (
        "Mixed Leafy Greens (500g)",
        "Organic Tomatoes (1kg)",
        "Fresh Carrots (750g)",
        "Organic Onions (500g)",
        "Seasonal Fruits Mix (1kg)",
    ),
    "stage_expectations": {
        "harvesting": datetime(2024, 7, 10, 6, 0, tzinfo=_IST),
        "delivered": datetime(2024, 7, 15, 9, 0, tzinfo=_IST),
    },
}


def seed_demo_order(service: TrackingService, order_id: str = DEMO_ORDER_ID) -> int:
    """Register the demo order details and append its events.

    Returns how many events were newly stored.
    """
    service.register_order(order_id, **DEMO_DETAILS)

    created = 0
    for fields in DEMO_EVENTS:
        result = service.append_event(order_id, **fields)
        if not result.accepted:
            logger.warning("demo_seed_rejected", order_id=order_id, stage_id=fields["stage_id"], reason=result.reason)
            continue
        if not result.duplicate:
            created += 1

    logger.info("demo_order_seeded", order_id=order_id, created=created)
    return created
