from fastapi import APIRouter, Request

from schemas.chat import utc_timestamp
from schemas.rooms import HealthResponse

health_router = APIRouter(tags=["health"])


@health_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    # Liveness only: must answer even when Redis is down
    return HealthResponse(
        status="healthy",
        server=request.app.state.server_id,
        timestamp=utc_timestamp(),
    )
