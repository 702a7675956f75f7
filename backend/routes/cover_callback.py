"""Cover art callback from the music provider."""

import logging

from fastapi import APIRouter, Depends, Request

from backend.routes.generate import get_services
from songgen.services import Services

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/suno-cover-callback", summary="Receive cover art from the music provider")
async def suno_cover_callback(request: Request, services: Services = Depends(get_services)):
    """Always acknowledges; the provider does not retry on our errors."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Cover callback with invalid JSON body")
        return {"success": True, "received": False}
    if not isinstance(payload, dict):
        return {"success": True, "received": False}
    song_id = services.cover.handle_callback(payload)
    return {"success": True, "received": True, "songId": song_id}
