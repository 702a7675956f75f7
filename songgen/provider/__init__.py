"""Music provider adapter layer: Suno over async HTTP."""

from songgen.provider.errors import (
    ErrorKind,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderGenerationError,
    ProviderHTTPError,
    classify_error,
    is_retryable,
    map_provider_error,
)
from songgen.provider.retry import backoff_delay, request_with_retry
from songgen.provider.suno_client import CoverStatus, ProviderStatus, SunoClient

__all__ = [
    "CoverStatus",
    "ErrorKind",
    "ProviderAuthError",
    "ProviderConnectionError",
    "ProviderError",
    "ProviderGenerationError",
    "ProviderHTTPError",
    "ProviderStatus",
    "SunoClient",
    "backoff_delay",
    "classify_error",
    "is_retryable",
    "map_provider_error",
    "request_with_retry",
]
