"""Redis Pub/Sub transport for StageAdvanced facts.

Published to order:{order_id}:events with a flat envelope and a 'type'
discriminator, so push/SMS/chat bridges can subscribe per order.
"""

import asyncio
import json
from datetime import UTC, datetime

import redis.asyncio as redis
import structlog
from redis.asyncio import Redis

from farmtrack.core.config import Settings
from farmtrack.domain.events import StageAdvanced
from farmtrack.domain.progress import compute_percent_complete
from farmtrack.domain.stages import StageCatalog

logger = structlog.get_logger(__name__)

STAGE_ADVANCED_EVENT = "order.stage.advanced"


def order_channel(order_id: str) -> str:
    return f"order:{order_id}:events"


class RedisStageNotifier:
    """Publishes facts on the running event loop without blocking the caller."""

    def __init__(self, client: Redis, catalog: StageCatalog, owns_client: bool = False):
        self.redis = client
        self._catalog = catalog
        self._owns_client = owns_client
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    async def from_settings(cls, settings: Settings, catalog: StageCatalog) -> "RedisStageNotifier":
        """Connect to settings.redis_url. The notifier owns the client and closes it in aclose()."""
        client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        await client.ping()
        logger.info("redis_notifier_connected", redis_url=settings.redis_url)
        return cls(client, catalog, owns_client=True)

    def build_envelope(self, fact: StageAdvanced, now: datetime | None = None) -> dict:
        now = now or datetime.now(UTC)
        stage = self._catalog.stage_by_id(fact.to_stage_id)
        return {
            "type": STAGE_ADVANCED_EVENT,
            **fact.to_dict(),
            "stage_label": stage.label,
            "percent_complete": compute_percent_complete(stage.ordinal, self._catalog.total_stages()),
            "timestamp": now.isoformat(),
        }

    def notify(self, fact: StageAdvanced) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("redis_notify_skipped", order_id=fact.order_id, reason="no_running_loop")
            return

        task = loop.create_task(self.publish(fact))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def publish(self, fact: StageAdvanced) -> None:
        """Publish one fact. Never raises; safe for asyncio.create_task()."""
        try:
            await self.redis.publish(order_channel(fact.order_id), json.dumps(self.build_envelope(fact)))
        except Exception as e:
            logger.warning(
                "redis_notify_failed",
                order_id=fact.order_id,
                to_stage_id=fact.to_stage_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def drain(self) -> None:
        """Wait for in-flight publishes (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Flush in-flight publishes, then close the client if this notifier opened it."""
        await self.drain()
        if self._owns_client:
            await self.redis.aclose()
