"""Order tracking API endpoints.

PUT  /api/orders/{order_id}                   - Register or replace order details
GET  /api/orders/{order_id}                   - Order details with a progress summary
POST /api/orders/{order_id}/events            - Append a stage event (farm update, logistics scan)
GET  /api/orders/{order_id}/events            - All events for an order, oldest first
GET  /api/orders/{order_id}/events/latest     - Most recent event
GET  /api/orders/{order_id}/progress          - Derived progress snapshot
GET  /api/orders/{order_id}/advances          - Recent StageAdvanced facts (polling)
GET  /api/orders/{order_id}/advances/stream   - StageAdvanced facts via SSE
"""

import asyncio
import json
import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from farmtrack.api.deps import OrderId, get_tracking_service
from farmtrack.core.exceptions import StageNotFoundError
from farmtrack.core.logging import bind_order_context
from farmtrack.domain.events import RejectionReason
from farmtrack.schemas.tracking import (
    AppendEventRequest,
    AppendEventResponse,
    OrderDetailsRequest,
    OrderDetailsResponse,
    OrderEventsResponse,
    ProgressResponse,
    StageAdvancedListResponse,
    StageAdvancedResponse,
    StageEventResponse,
)
from farmtrack.services.tracking_service import TrackingService

router = APIRouter()
logger = structlog.get_logger(__name__)

_HEARTBEAT_INTERVAL = 15.0

# Rejections are caller errors: unknown stage is a bad request body,
# ordering violations conflict with the order's recorded history.
_REJECTION_STATUS = {
    RejectionReason.UNKNOWN_STAGE: 422,
    RejectionReason.OUT_OF_ORDER_TIMESTAMP: 409,
    RejectionReason.STAGE_REGRESSION: 409,
}


@router.put("/{order_id}", response_model=OrderDetailsResponse)
async def put_order_details(
    order_id: OrderId,
    body: OrderDetailsRequest,
    service: TrackingService = Depends(get_tracking_service),
) -> OrderDetailsResponse:
    """Register or replace descriptive details. Stage history is not touched."""
    with bind_order_context(order_id):
        try:
            details = service.register_order(order_id, **body.model_dump())
        except StageNotFoundError as e:
            raise HTTPException(status_code=422, detail=RejectionReason.UNKNOWN_STAGE.value) from e
        logger.info("order_details_registered", items=len(details.items))
        return OrderDetailsResponse.from_details(details, service.project(order_id))


@router.get("/{order_id}", response_model=OrderDetailsResponse)
async def get_order_details(
    order_id: OrderId,
    service: TrackingService = Depends(get_tracking_service),
) -> OrderDetailsResponse:
    details = service.order_details(order_id)
    if details is None:
        raise HTTPException(status_code=404, detail="order_unknown")
    return OrderDetailsResponse.from_details(details, service.project(order_id))


@router.post("/{order_id}/events", response_model=AppendEventResponse, status_code=201)
async def append_event(
    order_id: OrderId,
    body: AppendEventRequest,
    service: TrackingService = Depends(get_tracking_service),
):
    """Record that an order reached a stage.

    Returns 201 for a new event and 200 for an idempotent repeat of an
    existing (stage_id, occurred_at). Rejections return 422 (unknown_stage)
    or 409 (out_of_order_timestamp, stage_regression) and change nothing.
    """
    with bind_order_context(order_id):
        result = service.append_event(
            order_id,
            body.stage_id,
            body.occurred_at,
            location=body.location,
            notes=body.notes,
            photo_refs=body.photo_refs,
        )

    if not result.accepted:
        raise HTTPException(status_code=_REJECTION_STATUS[result.reason], detail=result.reason.value)

    if result.duplicate:
        return JSONResponse(
            status_code=200,
            content=AppendEventResponse(event_id=result.event_id, duplicate=True).model_dump(),
        )

    return AppendEventResponse(event_id=result.event_id)


@router.get("/{order_id}/events", response_model=OrderEventsResponse)
async def list_events(
    order_id: OrderId,
    service: TrackingService = Depends(get_tracking_service),
) -> OrderEventsResponse:
    """Events oldest first. Unknown orders return an empty list, never 404."""
    items = [StageEventResponse.from_event(e) for e in service.events_for_order(order_id)]
    return OrderEventsResponse(order_id=order_id, items=items, total=len(items))


@router.get("/{order_id}/events/latest", response_model=StageEventResponse)
async def latest_event(
    order_id: OrderId,
    service: TrackingService = Depends(get_tracking_service),
) -> StageEventResponse:
    event = service.latest_event(order_id)
    if event is None:
        raise HTTPException(status_code=404, detail="order_unknown")
    return StageEventResponse.from_event(event)


@router.get("/{order_id}/progress", response_model=ProgressResponse)
async def get_progress(
    order_id: OrderId,
    service: TrackingService = Depends(get_tracking_service),
) -> ProgressResponse:
    snapshot = service.project(order_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="order_unknown")
    return ProgressResponse.from_snapshot(snapshot)


@router.get("/{order_id}/advances", response_model=StageAdvancedListResponse)
async def list_advances(
    order_id: OrderId,
    after: int = 0,
    service: TrackingService = Depends(get_tracking_service),
) -> StageAdvancedListResponse:
    """StageAdvanced facts with seq > after. Clients poll with the last seq they saw."""
    items = [StageAdvancedResponse.from_item(i) for i in service.recent_advances(order_id, after=after)]
    last_seq = items[-1].seq if items else after
    return StageAdvancedListResponse(order_id=order_id, items=items, last_seq=last_seq)


@router.get("/{order_id}/advances/stream")
async def stream_advances(
    order_id: OrderId,
    request: Request,
    service: TrackingService = Depends(get_tracking_service),
):
    """Stream StageAdvanced facts via SSE with 15-second heartbeat keepalive.

    Closes the stream once the order reaches the terminal stage.
    """
    terminal_id = service.catalog.stage_by_ordinal(service.catalog.total_stages() - 1).id

    async def event_generator():
        # Subscription is scoped to the generator; the finally below releases it
        subscription = service.feed.subscribe(order_id)
        last_heartbeat = time.monotonic()
        try:
            latest = service.latest_event(order_id)
            if latest is not None and latest.stage_id == terminal_id:
                yield f"data: {json.dumps({'type': 'order.stage.current', 'order_id': order_id, 'stage_id': terminal_id})}\n\n"
                return

            while True:
                if await request.is_disconnected():
                    return

                now = time.monotonic()
                if now - last_heartbeat >= _HEARTBEAT_INTERVAL:
                    yield "event: heartbeat\ndata: {}\n\n"
                    last_heartbeat = now

                try:
                    item = await asyncio.wait_for(subscription.queue.get(), timeout=1.0)
                except TimeoutError:
                    continue

                payload = {"type": "order.stage.advanced", "seq": item.seq, **item.fact.to_dict()}
                yield f"data: {json.dumps(payload)}\n\n"
                last_heartbeat = time.monotonic()
                if item.fact.to_stage_id == terminal_id:
                    return
        finally:
            service.feed.unsubscribe(subscription)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
