from fastapi import APIRouter

from farmtrack.api.routes import health, orders, stages

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(stages.router, tags=["stages"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
