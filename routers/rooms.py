from typing import List

from fastapi import APIRouter, HTTPException, Request

from errors import StoreUnavailable
from schemas.rooms import RoomSummary
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/rooms", tags=["rooms"])


@rooms_router.get("", response_model=List[RoomSummary])
async def list_rooms(request: Request):
    """Every room that has been joined, with its current member count across all instances."""
    gateway = request.app.state.gateway
    try:
        rooms = await gateway.presence.list_rooms()
    except StoreUnavailable as e:
        logger.error(f"Room listing failed: {e.message}")
        raise HTTPException(status_code=503, detail=e.message)
    logger.debug(f"Listed {len(rooms)} rooms")
    return rooms
