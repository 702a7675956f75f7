"""Song generation API routes: async generation with task polling.

POST /api/generate
  → lyrics-only: returns { songTitle, lyrics } synchronously.
  → music: registers a task, returns { taskId, status: PROCESSING } immediately.
  → background poller drives the task to a terminal status.

GET /api/check-music-status/{task_id}
  → Returns status, clips, lyrics and metadata. Read-only.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from backend.auth import get_identity
from songgen.errors import SongGenError
from songgen.identity import Identity
from songgen.provider.errors import ProviderError, map_provider_error
from songgen.schemas.generation import GenerateSongRequest, build_status_payload
from songgen.services import Services

logger = logging.getLogger(__name__)
router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, **extra},
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/generate",
    summary="Generate lyrics, or start music generation (async)",
    description=(
        "With lyricsOnly=true returns a title and lyrics. Otherwise submits the song "
        "to the music provider and returns a taskId; poll GET /api/check-music-status/{taskId}."
    ),
)
async def generate_song(
    body: GenerateSongRequest,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    try:
        result = await services.orchestrator.generate(body, identity)
    except SongGenError as e:
        logger.warning("Generate rejected (%d %s): %s", e.status_code, e.code, e.message)
        return error_response(e.status_code, e.message, code=e.code, **e.extra)
    except ProviderError as e:
        status_code, message = map_provider_error(e)
        logger.error("Provider submit failed (%s): %s", e.kind.value, e.message)
        return error_response(status_code, message, code=e.kind.value, details=e.message)
    return result.model_dump(mode="json", by_alias=True)


@router.get(
    "/check-music-status/{task_id}",
    summary="Get music generation status",
    description="Poll this endpoint until status is COMPLETED, PARTIAL or FAILED.",
)
async def check_music_status(task_id: str, services: Services = Depends(get_services)):
    task = services.task_store.get(task_id)
    if task is None:
        return error_response(404, "Task not found", taskId=task_id)
    return build_status_payload(task).to_json()
