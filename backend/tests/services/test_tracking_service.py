"""Tests for TrackingService wiring and the demo seed."""
from datetime import date

import pytest

from farmtrack.notifications import LoggingNotifier, SubscriptionFeed
from farmtrack.services.seed import DEMO_ORDER_ID, seed_demo_order
from farmtrack.services.tracking_service import TrackingService

pytestmark = pytest.mark.unit


class Recorder:
    def __init__(self):
        self.facts = []

    def notify(self, fact):
        self.facts.append(fact)


def test_hub_includes_logging_feed_and_extra_notifiers(catalog):
    """The hub notifies the log, then the feed, then any extra notifiers."""
    extra = Recorder()
    feed = SubscriptionFeed()
    service = TrackingService(catalog, feed=feed, notifiers=[extra])

    notifiers = service.hub.notifiers
    assert isinstance(notifiers[0], LoggingNotifier)
    assert notifiers[1] is feed
    assert notifiers[2] is extra


def test_append_reaches_feed_and_notifiers(catalog, at):
    """An accepted stage change reaches both the feed and extra notifiers."""
    extra = Recorder()
    service = TrackingService(catalog, notifiers=[extra])

    result = service.append_event("FTO-1", "sowing", at(0))

    assert [f.event_id for f in extra.facts] == [result.event_id]
    assert [i.fact.event_id for i in service.recent_advances("FTO-1")] == [result.event_id]


def test_queries_delegate_to_ledger_and_projector(catalog, at):
    """Event and progress queries read through to the ledger."""
    service = TrackingService(catalog)
    service.append_event("FTO-1", "sowing", at(0))
    service.append_event("FTO-1", "growing", at(14))

    assert len(service.events_for_order("FTO-1")) == 2
    assert service.latest_event("FTO-1").stage_id == "growing"
    assert service.project("FTO-1").percent_complete == 20
    assert service.project("FTO-404") is None


def test_register_order_does_not_create_history(catalog):
    """Order details alone leave the order without progress."""
    service = TrackingService(catalog)

    details = service.register_order("FTO-1", farm_name="Green Valley Organic Farm", farmer_name="Rajesh Kumar")

    assert service.order_details("FTO-1") is details
    assert service.events_for_order("FTO-1") == ()
    assert service.project("FTO-1") is None


def test_projection_includes_registered_expectations(catalog, at):
    """Stage expectations from order details appear on progress rows."""
    service = TrackingService(catalog)
    service.register_order("FTO-1", farm_name="F", farmer_name="A", stage_expectations={"delivered": at(44)})
    service.append_event("FTO-1", "sowing", at(0))

    rows = {row.stage_id: row for row in service.project("FTO-1").stages}
    assert rows["delivered"].expected_at == at(44)
    assert rows["sowing"].expected_at is None


def test_seed_demo_order(catalog):
    """The demo order lands at harvesting, 40 percent complete."""
    service = TrackingService(catalog)

    assert seed_demo_order(service) == 3
    snapshot = service.project(DEMO_ORDER_ID)
    assert snapshot.current_stage_id == "harvesting"
    assert snapshot.completed_stages == ("sowing", "growing")
    assert snapshot.percent_complete == 40


def test_seed_demo_order_registers_details(catalog):
    """The demo order carries farm, delivery and item details."""
    service = TrackingService(catalog)
    seed_demo_order(service)

    details = service.order_details(DEMO_ORDER_ID)
    assert details.farm_name == "Green Valley Organic Farm"
    assert details.farmer_name == "Rajesh Kumar"
    assert details.expected_delivery == date(2024, 7, 15)
    assert details.delivery_slot == "Morning (9 AM - 12 PM)"
    assert len(details.items) == 5
    assert set(details.stage_expectations) == {"harvesting", "delivered"}


def test_seed_demo_order_is_idempotent(catalog):
    """Re-seeding stores no new events and emits no new facts."""
    service = TrackingService(catalog)
    seed_demo_order(service)

    assert seed_demo_order(service) == 0
    assert len(service.events_for_order(DEMO_ORDER_ID)) == 3
    assert len(service.recent_advances(DEMO_ORDER_ID)) == 3
