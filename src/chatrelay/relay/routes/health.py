"""Health check endpoint for the chat relay.

- ``GET /health`` -- Simple liveness check (no auth, no rate limit).
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from chatrelay import __version__
from chatrelay.relay.models import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Return relay status."""
    store = request.app.state.channel_store
    return HealthResponse(
        status="ok",
        version=__version__,
        local_channels=store.local_channel_count,
    )
