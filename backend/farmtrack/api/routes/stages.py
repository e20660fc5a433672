from fastapi import APIRouter, Depends

from farmtrack.api.deps import get_tracking_service
from farmtrack.schemas.tracking import StageCatalogResponse, StageResponse
from farmtrack.services.tracking_service import TrackingService

router = APIRouter()


@router.get("/stages", response_model=StageCatalogResponse)
async def list_stages(service: TrackingService = Depends(get_tracking_service)) -> StageCatalogResponse:
    """The fixed farm-to-table sequence in ordinal order."""
    items = [StageResponse.from_stage(s) for s in service.catalog]
    return StageCatalogResponse(items=items, total=len(items))
