"""Append-only stage ledger.

Source of truth for "where is my order". Each order's history is an
immutable tuple that is replaced on every accepted append, so readers never
take a lock and never observe a partially-appended event. Appends for the
same order are serialized by a per-order lock (check latest, validate,
insert as one unit); appends for different orders never contend.

The ledger does no disk or network I/O. StageAdvanced facts are handed to a
notifier, whose failures never roll back an accepted append.
"""

import threading
import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import structlog

from farmtrack.domain.events import (
    AppendResult,
    RejectionReason,
    StageAdvanced,
    StageEvent,
    ensure_aware,
)
from farmtrack.domain.stages import StageCatalog

logger = structlog.get_logger(__name__)


class StageLedger:
    """In-memory, per-order append-only store of StageEvents."""

    def __init__(
        self,
        catalog: StageCatalog,
        notifier=None,
        now: Callable[[], datetime] | None = None,
    ):
        self._catalog = catalog
        self._notifier = notifier
        self._now = now or (lambda: datetime.now(UTC))

        self._histories: dict[str, tuple[StageEvent, ...]] = {}
        self._dedup: dict[str, dict[tuple[str, datetime], str]] = {}
        self._order_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, order_id: str) -> threading.Lock:
        lock = self._order_locks.get(order_id)
        if lock is None:
            with self._registry_lock:
                lock = self._order_locks.setdefault(order_id, threading.Lock())
        return lock

    def append_event(
        self,
        order_id: str,
        stage_id: str,
        occurred_at: datetime,
        location: str | None = None,
        notes: str | None = None,
        photo_refs: Sequence[str] | None = None,
    ) -> AppendResult:
        """Validate and record a stage event for an order.

        Args:
            order_id: Order identifier
            stage_id: Catalog stage id the order reached
            occurred_at: When it happened (naive values are taken as UTC)
            location: Optional free-text location
            notes: Optional free-text update
            photo_refs: Optional ordered photo identifiers

        Returns:
            AppendResult. Rejections leave the ledger unchanged. A repeat of an
            existing (order_id, stage_id, occurred_at) returns the stored
            event's id with duplicate=True and emits nothing.

        Raises:
            ValueError: If order_id is blank
        """
        if not order_id or not order_id.strip():
            raise ValueError("order_id must be a non-empty string")

        log = logger.bind(order_id=order_id, stage_id=stage_id)

        if stage_id not in self._catalog:
            log.warning("event_rejected", reason=RejectionReason.UNKNOWN_STAGE)
            return AppendResult.rejected(RejectionReason.UNKNOWN_STAGE)

        occurred_at = ensure_aware(occurred_at)
        new_stage = self._catalog.stage_by_id(stage_id)

        with self._lock_for(order_id):
            history = self._histories.get(order_id, ())
            seen = self._dedup.get(order_id, {})

            existing_id = seen.get((stage_id, occurred_at))
            if existing_id is not None:
                log.info("event_duplicate", event_id=existing_id)
                return AppendResult(accepted=True, event_id=existing_id, duplicate=True)

            latest = history[-1] if history else None
            if latest is not None:
                if occurred_at < latest.occurred_at:
                    log.warning(
                        "event_rejected",
                        reason=RejectionReason.OUT_OF_ORDER_TIMESTAMP,
                        occurred_at=occurred_at,
                        latest_occurred_at=latest.occurred_at,
                    )
                    return AppendResult.rejected(RejectionReason.OUT_OF_ORDER_TIMESTAMP)

                current_stage = self._catalog.stage_by_id(latest.stage_id)
                if new_stage.ordinal < current_stage.ordinal:
                    log.warning(
                        "event_rejected",
                        reason=RejectionReason.STAGE_REGRESSION,
                        current_stage_id=current_stage.id,
                    )
                    return AppendResult.rejected(RejectionReason.STAGE_REGRESSION)

            event = StageEvent(
                event_id=str(uuid.uuid4()),
                order_id=order_id,
                stage_id=stage_id,
                occurred_at=occurred_at,
                location=location,
                notes=notes,
                photo_refs=tuple(photo_refs or ()),
                recorded_at=self._now(),
            )

            self._dedup[order_id] = {**seen, event.dedup_key: event.event_id}
            self._histories[order_id] = history + (event,)
            log.info("event_appended", event_id=event.event_id, occurred_at=occurred_at)

            advanced = None
            if latest is None or latest.stage_id != stage_id:
                advanced = StageAdvanced(
                    order_id=order_id,
                    from_stage_id=latest.stage_id if latest else None,
                    to_stage_id=stage_id,
                    occurred_at=occurred_at,
                    event_id=event.event_id,
                )
                # Emitted under the order lock so facts for one order stay in order
                self._emit(advanced)

        return AppendResult(accepted=True, event_id=event.event_id, advanced=advanced)

    def _emit(self, fact: StageAdvanced) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(fact)
        except Exception as e:
            logger.error(
                "notifier_failed",
                order_id=fact.order_id,
                to_stage_id=fact.to_stage_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    def events_for_order(self, order_id: str) -> tuple[StageEvent, ...]:
        """All events for an order, oldest first. Empty when the order is unknown."""
        return self._histories.get(order_id, ())

    def latest_event(self, order_id: str) -> StageEvent | None:
        history = self._histories.get(order_id, ())
        return history[-1] if history else None

    def order_ids(self) -> list[str]:
        return list(self._histories)

    def __len__(self) -> int:
        return sum(len(h) for h in list(self._histories.values()))
