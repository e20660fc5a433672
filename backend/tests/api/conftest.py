"""API-specific test fixtures."""

import pytest
from fastapi.testclient import TestClient

from farmtrack.main import create_app


@pytest.fixture
def api_client():
    """FastAPI test client with a fresh ledger.

    Entering the client runs the app lifespan, which builds the stage
    catalog and TrackingService.
    """
    app = create_app()
    with TestClient(app) as client:
        yield client


@pytest.fixture
def post_event(api_client):
    """post_event(order_id, stage_id, occurred_at, **extra) -> response."""

    def _post(order_id: str, stage_id: str, occurred_at: str, **extra):
        return api_client.post(
            f"/api/orders/{order_id}/events",
            json={"stage_id": stage_id, "occurred_at": occurred_at, **extra},
        )

    return _post
