"""Retry-with-backoff for provider HTTP calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from songgen.provider.errors import (
    ProviderConnectionError,
    ProviderHTTPError,
    classify_error,
    is_retryable,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt ``attempt`` (1-based): 2**attempt * 1000 ms."""
    return (2 ** attempt * 1000) / 1000.0


async def request_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    label: str = "",
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response:
    """Call ``send`` until it yields a response ``classify_error`` deems final.

    Successful and non-retryable responses (4xx included) are returned as-is;
    the caller decides what a 4xx means. Retryable kinds (5xx, network) are
    retried. A non-retryable transport error is raised at once. When every
    attempt fails, ``ProviderHTTPError`` (5xx) or ``ProviderConnectionError``
    (network) is raised.
    """
    last_error: ProviderHTTPError | ProviderConnectionError | None = None

    for attempt in range(1, max_attempts + 1):
        logger.debug("Attempt %d/%d: %s", attempt, max_attempts, label)
        try:
            response = await send()
        except httpx.TransportError as exc:
            kind = classify_error(exc)
            logger.warning(
                "Attempt %d/%d failed for %s: %s (%s: %s)",
                attempt, max_attempts, label, kind.value, type(exc).__name__, exc,
            )
            last_error = ProviderConnectionError(str(exc) or type(exc).__name__, kind)
            last_error.__cause__ = exc
            if not is_retryable(kind):
                raise last_error
        else:
            kind = classify_error(status_code=response.status_code)
            if not is_retryable(kind):
                if attempt > 1:
                    logger.info("Attempt %d/%d succeeded for %s", attempt, max_attempts, label)
                return response
            logger.warning(
                "Attempt %d/%d for %s returned HTTP %d (%s)",
                attempt, max_attempts, label, response.status_code, kind.value,
            )
            last_error = ProviderHTTPError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                kind,
                response.status_code,
            )

        if attempt < max_attempts:
            delay = backoff_delay(attempt)
            logger.info("Waiting %.0fms before next attempt for %s", delay * 1000, label)
            await sleep(delay)

    logger.error("All %d attempts failed for %s", max_attempts, label)
    raise last_error or ProviderConnectionError(f"No attempts made for {label}")
