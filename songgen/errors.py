"""Domain errors raised before a generation task is registered.

Route handlers translate these into synchronous HTTP responses. Anything
that goes wrong after registration is recorded on the task instead.
"""

from __future__ import annotations

from typing import Any


class SongGenError(Exception):
    """Base class for request-time failures."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra


class ConfigurationError(SongGenError):
    """A required API key or setting is missing."""

    status_code = 500
    code = "CONFIGURATION_ERROR"


class ValidationFailed(SongGenError):
    """Request payload or identity headers are unusable."""

    status_code = 400
    code = "BAD_REQUEST"


class PaywallError(SongGenError):
    """Free-song quota exhausted and no unlimited access."""

    status_code = 402
    code = "PAYMENT_REQUIRED"

    def __init__(self, free_songs_used: int, limit: int):
        super().__init__(
            "You have already used your free song creations. Please upgrade to create more.",
            freeSongsUsed=free_songs_used,
            maxFreeSongs=limit,
            requiresPayment=True,
        )
        self.free_songs_used = free_songs_used
        self.limit = limit


class LyricsGenerationError(SongGenError):
    """The LLM could not produce lyrics."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"


class LyricsQuotaError(LyricsGenerationError):
    """LLM rate limit or billing quota hit (HTTP 429 upstream)."""

    status_code = 503
    code = "SERVICE_UNAVAILABLE"
