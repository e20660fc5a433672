"""Stage event facts and append outcomes.

Pure domain types. Events are immutable once created; corrections are new
events, never edits.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class RejectionReason(str, Enum):
    """Why the ledger refused an append."""

    UNKNOWN_STAGE = "unknown_stage"
    OUT_OF_ORDER_TIMESTAMP = "out_of_order_timestamp"
    STAGE_REGRESSION = "stage_regression"


@dataclass(frozen=True)
class StageEvent:
    """A timestamped fact that an order reached a stage."""

    event_id: str
    order_id: str
    stage_id: str
    occurred_at: datetime
    location: str | None = None
    notes: str | None = None
    photo_refs: tuple[str, ...] = ()
    recorded_at: datetime | None = field(default=None, compare=False)

    @property
    def dedup_key(self) -> tuple[str, datetime]:
        return (self.stage_id, self.occurred_at)


@dataclass(frozen=True)
class StageAdvanced:
    """Emitted once per accepted append that changes an order's current stage."""

    order_id: str
    to_stage_id: str
    occurred_at: datetime
    event_id: str
    from_stage_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "from_stage_id": self.from_stage_id,
            "to_stage_id": self.to_stage_id,
            "occurred_at": self.occurred_at.isoformat(),
            "event_id": self.event_id,
        }


@dataclass(frozen=True)
class AppendResult:
    """Result of an append attempt."""

    accepted: bool
    event_id: str | None = None
    reason: RejectionReason | None = None
    duplicate: bool = False
    advanced: StageAdvanced | None = None

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "AppendResult":
        return cls(accepted=False, reason=reason)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so per-order comparisons never mix kinds."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value
