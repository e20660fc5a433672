from typing import Annotated

from fastapi import Path, Request

from farmtrack.services.tracking_service import TrackingService

# Path order ids must contain a non-whitespace character
OrderId = Annotated[str, Path(min_length=1, pattern=r"\S")]


def get_tracking_service(request: Request) -> TrackingService:
    """Return the process-wide TrackingService created in the app lifespan."""
    service = getattr(request.app.state, "tracking", None)
    if service is None:
        raise RuntimeError("TrackingService not initialized")
    return service
