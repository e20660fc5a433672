"""Deterministic progress projection.

Pure functions over a ledger snapshot. Nothing here is stored: snapshots are
recomputed on every read so they can never drift from the ledger.

Completion is evidenced by the next stage's event, never self-declared: the
stage of the latest event is "active", every stage before it is "completed",
and every stage after it is "pending".
"""
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from farmtrack.domain.events import StageEvent
from farmtrack.domain.stages import StageCatalog


class StageStatus(str, Enum):
    COMPLETED = "completed"
    ACTIVE = "active"
    PENDING = "pending"


@dataclass(frozen=True)
class StageProgress:
    """Display row for one catalog stage."""

    stage_id: str
    ordinal: int
    label: str
    status: StageStatus
    latest_event: StageEvent | None = None
    expected_at: datetime | None = None


@dataclass(frozen=True)
class ProgressSnapshot:
    order_id: str
    current_stage_id: str
    completed_stages: tuple[str, ...]
    percent_complete: int
    last_updated_at: datetime
    stages: tuple[StageProgress, ...] = ()


def compute_percent_complete(ordinal: int, total_stages: int) -> int:
    """Percent complete for the stage at `ordinal` (0-100).

    100 * ordinal / (total - 1), rounded half-up and clamped. A single-stage
    catalog is complete as soon as its only stage is reached.
    """
    if total_stages <= 1:
        return 100
    raw = 100 * ordinal / (total_stages - 1)
    return max(0, min(100, math.floor(raw + 0.5)))


def build_snapshot(
    order_id: str,
    events: tuple[StageEvent, ...] | list[StageEvent],
    catalog: StageCatalog,
    expected: Mapping[str, datetime] | None = None,
) -> ProgressSnapshot | None:
    """Derive a ProgressSnapshot from an order's events (oldest first).

    `expected` maps stage ids to planned times; they are informational and
    never change a stage's status. Returns None when there are no events
    (order unknown).
    """
    expected = expected or {}
    if not events:
        return None

    latest = events[-1]
    current = catalog.stage_by_id(latest.stage_id)
    k = current.ordinal

    # Latest event per stage; later events overwrite earlier ones
    latest_by_stage: dict[str, StageEvent] = {}
    for event in events:
        latest_by_stage[event.stage_id] = event

    rows = []
    for stage in catalog:
        if stage.ordinal < k:
            status = StageStatus.COMPLETED
        elif stage.ordinal == k:
            status = StageStatus.ACTIVE
        else:
            status = StageStatus.PENDING
        rows.append(
            StageProgress(
                stage_id=stage.id,
                ordinal=stage.ordinal,
                label=stage.label,
                status=status,
                latest_event=latest_by_stage.get(stage.id),
                expected_at=expected.get(stage.id),
            )
        )

    return ProgressSnapshot(
        order_id=order_id,
        current_stage_id=current.id,
        completed_stages=tuple(s.id for s in catalog if s.ordinal < k),
        percent_complete=compute_percent_complete(k, catalog.total_stages()),
        last_updated_at=latest.occurred_at,
        stages=tuple(rows),
    )


class ProgressProjector:
    """Stateless view over a ledger. Owns nothing."""

    def __init__(self, ledger, catalog: StageCatalog):
        self._ledger = ledger
        self._catalog = catalog

    def project(self, order_id: str, expected: Mapping[str, datetime] | None = None) -> ProgressSnapshot | None:
        """Current progress for an order, or None when the order is unknown."""
        return build_snapshot(order_id, self._ledger.events_for_order(order_id), self._catalog, expected)
