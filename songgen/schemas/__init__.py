"""Request/response schemas for the HTTP surface."""

from songgen.schemas.generation import (
    GenerateMusicResponse,
    GenerateSongRequest,
    LyricsOnlyResponse,
    TaskStatusResponse,
    build_status_payload,
    format_elapsed,
)

__all__ = [
    "GenerateMusicResponse",
    "GenerateSongRequest",
    "LyricsOnlyResponse",
    "TaskStatusResponse",
    "build_status_payload",
    "format_elapsed",
]
