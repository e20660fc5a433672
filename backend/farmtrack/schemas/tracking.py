"""Pydantic schemas for the order tracking API."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from farmtrack.domain.events import StageAdvanced, StageEvent
from farmtrack.domain.orders import OrderDetails
from farmtrack.domain.progress import ProgressSnapshot
from farmtrack.domain.stages import Stage
from farmtrack.notifications import FeedItem


class StageResponse(BaseModel):
    id: str
    ordinal: int
    label: str
    description: str = ""

    @classmethod
    def from_stage(cls, stage: Stage) -> "StageResponse":
        return cls(id=stage.id, ordinal=stage.ordinal, label=stage.label, description=stage.description)


class StageCatalogResponse(BaseModel):
    items: list[StageResponse] = Field(default_factory=list)
    total: int = 0


class AppendEventRequest(BaseModel):
    """A farm update or logistics scan for one order."""

    stage_id: str = Field(min_length=1)
    occurred_at: datetime
    location: str | None = None
    notes: str | None = None
    photo_refs: list[str] = Field(default_factory=list)


class AppendEventResponse(BaseModel):
    event_id: str
    duplicate: bool = False


class StageEventResponse(BaseModel):
    event_id: str
    order_id: str
    stage_id: str
    occurred_at: datetime
    location: str | None = None
    notes: str | None = None
    photo_refs: list[str] = Field(default_factory=list)
    recorded_at: datetime | None = None

    @classmethod
    def from_event(cls, event: StageEvent) -> "StageEventResponse":
        return cls(
            event_id=event.event_id,
            order_id=event.order_id,
            stage_id=event.stage_id,
            occurred_at=event.occurred_at,
            location=event.location,
            notes=event.notes,
            photo_refs=list(event.photo_refs),
            recorded_at=event.recorded_at,
        )


class OrderEventsResponse(BaseModel):
    """Events for an order, oldest first. items is empty, never null, for unknown orders."""

    order_id: str
    items: list[StageEventResponse] = Field(default_factory=list)
    total: int = 0


class StageProgressResponse(BaseModel):
    stage_id: str
    ordinal: int
    label: str
    status: Literal["completed", "active", "pending"]
    latest_event: StageEventResponse | None = None
    expected_at: datetime | None = None


class ProgressResponse(BaseModel):
    order_id: str
    current_stage_id: str
    completed_stages: list[str] = Field(default_factory=list)
    percent_complete: int
    last_updated_at: datetime
    stages: list[StageProgressResponse] = Field(default_factory=list)

    @classmethod
    def from_snapshot(cls, snapshot: ProgressSnapshot) -> "ProgressResponse":
        return cls(
            order_id=snapshot.order_id,
            current_stage_id=snapshot.current_stage_id,
            completed_stages=list(snapshot.completed_stages),
            percent_complete=snapshot.percent_complete,
            last_updated_at=snapshot.last_updated_at,
            stages=[
                StageProgressResponse(
                    stage_id=row.stage_id,
                    ordinal=row.ordinal,
                    label=row.label,
                    status=row.status.value,
                    latest_event=StageEventResponse.from_event(row.latest_event) if row.latest_event else None,
                    expected_at=row.expected_at,
                )
                for row in snapshot.stages
            ],
        )


class StageAdvancedResponse(BaseModel):
    seq: int
    order_id: str
    from_stage_id: str | None = None
    to_stage_id: str
    occurred_at: datetime
    event_id: str

    @classmethod
    def from_item(cls, item: FeedItem) -> "StageAdvancedResponse":
        fact: StageAdvanced = item.fact
        return cls(
            seq=item.seq,
            order_id=fact.order_id,
            from_stage_id=fact.from_stage_id,
            to_stage_id=fact.to_stage_id,
            occurred_at=fact.occurred_at,
            event_id=fact.event_id,
        )


class StageAdvancedListResponse(BaseModel):
    order_id: str
    items: list[StageAdvancedResponse] = Field(default_factory=list)
    last_seq: int = 0


class OrderDetailsRequest(BaseModel):
    """Descriptive order details. Replaces any details already registered."""

    farm_name: str = Field(min_length=1)
    farmer_name: str = Field(min_length=1)
    farm_location: str | None = None
    delivery_address: str | None = None
    expected_delivery: date | None = None
    delivery_slot: str | None = None
    items: list[str] = Field(default_factory=list)
    stage_expectations: dict[str, datetime] = Field(default_factory=dict)


class OrderDetailsResponse(BaseModel):
    order_id: str
    farm_name: str
    farmer_name: str
    farm_location: str | None = None
    delivery_address: str | None = None
    expected_delivery: date | None = None
    delivery_slot: str | None = None
    items: list[str] = Field(default_factory=list)
    stage_expectations: dict[str, datetime] = Field(default_factory=dict)
    # Progress summary; null until the order has a recorded event
    current_stage_id: str | None = None
    percent_complete: int | None = None

    @classmethod
    def from_details(cls, details: OrderDetails, snapshot: ProgressSnapshot | None = None) -> "OrderDetailsResponse":
        return cls(
            order_id=details.order_id,
            farm_name=details.farm_name,
            farmer_name=details.farmer_name,
            farm_location=details.farm_location,
            delivery_address=details.delivery_address,
            expected_delivery=details.expected_delivery,
            delivery_slot=details.delivery_slot,
            items=list(details.items),
            stage_expectations=dict(details.stage_expectations),
            current_stage_id=snapshot.current_stage_id if snapshot else None,
            percent_complete=snapshot.percent_complete if snapshot else None,
        )
