"""Tests for Redis Pub/Sub publication of StageAdvanced facts."""
import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from fakeredis import aioredis

from farmtrack.core.config import Settings
from farmtrack.domain.events import StageAdvanced
from farmtrack.ledger.stage_ledger import StageLedger
from farmtrack.notifications import RedisStageNotifier, order_channel
from farmtrack.notifications import redis_notifier as redis_notifier_mod

pytestmark = pytest.mark.unit

_FACT = StageAdvanced(
    order_id="FTO-2024-001",
    from_stage_id="growing",
    to_stage_id="harvesting",
    occurred_at=datetime(2024, 7, 10, 8, 0, tzinfo=UTC),
    event_id="evt-harvest",
)


@pytest.fixture
async def redis_client():
    """Create a fake Redis client for testing."""
    client = aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def redis_notifier(redis_client, catalog):
    return RedisStageNotifier(redis_client, catalog)


def test_order_channel():
    """Facts for an order go to order:{order_id}:events."""
    assert order_channel("FTO-1") == "order:FTO-1:events"


def test_envelope_fields(catalog):
    """Envelope flattens the fact and adds label, percent and timestamp."""
    redis_notifier = RedisStageNotifier(AsyncMock(), catalog)
    now = datetime(2024, 7, 10, 8, 0, 5, tzinfo=UTC)
    envelope = redis_notifier.build_envelope(_FACT, now=now)

    assert envelope == {
        "type": "order.stage.advanced",
        "order_id": "FTO-2024-001",
        "from_stage_id": "growing",
        "to_stage_id": "harvesting",
        "occurred_at": "2024-07-10T08:00:00+00:00",
        "event_id": "evt-harvest",
        "stage_label": "Ready for Harvest",
        "percent_complete": 40,
        "timestamp": "2024-07-10T08:00:05+00:00",
    }


@pytest.mark.asyncio
async def test_publish_to_order_channel(redis_notifier, redis_client):
    """publish() sends one JSON envelope to the order's channel."""
    redis_client.publish = AsyncMock()

    await redis_notifier.publish(_FACT)

    redis_client.publish.assert_called_once()
    channel, raw = redis_client.publish.call_args[0]
    assert channel == "order:FTO-2024-001:events"
    event = json.loads(raw)
    assert event["type"] == "order.stage.advanced"
    assert event["to_stage_id"] == "harvesting"
    assert "T" in event["timestamp"]


@pytest.mark.asyncio
async def test_subscriber_receives_message(redis_notifier, redis_client):
    """A Redis subscriber on the order channel receives the published fact."""
    pubsub = redis_client.pubsub()
    await pubsub.subscribe(order_channel("FTO-2024-001"))
    await pubsub.get_message(timeout=1.0)  # subscribe confirmation

    await redis_notifier.publish(_FACT)

    message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
    assert message is not None
    assert json.loads(message["data"])["event_id"] == "evt-harvest"

    await pubsub.unsubscribe()
    await pubsub.aclose()


@pytest.mark.asyncio
async def test_publish_failure_never_raises(redis_notifier, redis_client):
    """A Redis outage is logged, never raised."""
    redis_client.publish = AsyncMock(side_effect=ConnectionError("redis down"))

    await redis_notifier.publish(_FACT)


@pytest.mark.asyncio
async def test_notify_schedules_background_publish(redis_notifier, redis_client):
    """notify() returns immediately; drain() waits for the scheduled publish."""
    redis_client.publish = AsyncMock()

    redis_notifier.notify(_FACT)
    await redis_notifier.drain()

    redis_client.publish.assert_called_once()


def test_notify_without_running_loop_is_dropped(catalog):
    """Outside an event loop the fact is skipped rather than raising."""
    redis_client = AsyncMock()
    redis_notifier = RedisStageNotifier(redis_client, catalog)

    redis_notifier.notify(_FACT)

    redis_client.publish.assert_not_called()


@pytest.mark.asyncio
async def test_ledger_append_publishes_once(redis_notifier, redis_client, catalog):
    """A duplicate append publishes nothing further."""
    redis_client.publish = AsyncMock()
    ledger = StageLedger(catalog, notifier=redis_notifier)
    occurred = datetime(2024, 6, 1, 9, 0, tzinfo=UTC)

    ledger.append_event("FTO-1", "sowing", occurred)
    ledger.append_event("FTO-1", "sowing", occurred)  # duplicate
    await redis_notifier.drain()

    assert redis_client.publish.call_count == 1


class TestClientOwnership:
    """Test the notifier's client lifecycle."""

    @pytest.mark.asyncio
    async def test_from_settings_connects_to_redis_url(self, monkeypatch, catalog):
        """from_settings() opens a client for redis_url and pings it."""
        opened = {}

        def fake_from_url(url, **kwargs):
            opened["url"] = url
            opened["kwargs"] = kwargs
            opened["client"] = aioredis.FakeRedis(decode_responses=True)
            return opened["client"]

        monkeypatch.setattr(redis_notifier_mod.redis, "from_url", fake_from_url)
        settings = Settings(redis_url="redis://cache:6379/2")

        notifier = await RedisStageNotifier.from_settings(settings, catalog)

        assert opened["url"] == "redis://cache:6379/2"
        assert opened["kwargs"]["decode_responses"] is True
        assert notifier.redis is opened["client"]
        await notifier.aclose()

    @pytest.mark.asyncio
    async def test_aclose_closes_owned_client(self, catalog):
        """An owned client is closed after in-flight publishes finish."""
        client = AsyncMock()
        notifier = RedisStageNotifier(client, catalog, owns_client=True)

        notifier.notify(_FACT)
        await notifier.aclose()

        client.publish.assert_called_once()
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_client_open(self, catalog):
        """A client passed in by the caller stays open."""
        client = AsyncMock()
        notifier = RedisStageNotifier(client, catalog)

        await notifier.aclose()

        client.aclose.assert_not_called()
