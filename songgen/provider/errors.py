"""Provider error taxonomy and the single classification function.

``classify_error`` feeds retry logging, the retry-vs-fatal decision and the
HTTP status mapping, so every call site agrees on what a failure means.
"""

from __future__ import annotations

import ssl
from enum import Enum

import httpx


class ErrorKind(str, Enum):
    DNS = "dns"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    TLS = "tls"
    NETWORK = "network"
    SERVER = "server"
    AUTH = "auth"
    CLIENT = "client"
    UNKNOWN = "unknown"


_NETWORK_KINDS = {
    ErrorKind.DNS,
    ErrorKind.CONNECTION_REFUSED,
    ErrorKind.TIMEOUT,
    ErrorKind.TLS,
    ErrorKind.NETWORK,
}

_DNS_MARKERS = ("name or service not known", "nodename nor servname", "getaddrinfo", "enotfound", "name resolution")
_REFUSED_MARKERS = ("connection refused", "econnrefused", "errno 111", "errno 61")
_TLS_MARKERS = ("certificate", "ssl", "tls")


class ProviderError(Exception):
    """Base class for failures talking to the music provider."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """401/403 from the provider. Never retried."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, ErrorKind.AUTH, status_code)


class ProviderGenerationError(ProviderError):
    """Provider accepted the call but reported a failure envelope."""


class ProviderHTTPError(ProviderError):
    """Non-success HTTP status that survived the retry helper."""


class ProviderConnectionError(ProviderError):
    """Network-level failure after all attempts were used."""


def _walk_causes(exc: BaseException):
    seen: set[int] = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        yield cur
        cur = cur.__cause__ or cur.__context__


def classify_status(status_code: int) -> ErrorKind:
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code >= 500:
        return ErrorKind.SERVER
    if status_code >= 400:
        return ErrorKind.CLIENT
    return ErrorKind.UNKNOWN


def classify_error(exc: BaseException | None = None, status_code: int | None = None) -> ErrorKind:
    """Map an exception or HTTP status onto an ``ErrorKind``."""
    if status_code is not None:
        return classify_status(status_code)
    if exc is None:
        return ErrorKind.UNKNOWN
    if isinstance(exc, ProviderError):
        return exc.kind
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code)
    if isinstance(exc, httpx.TimeoutException):
        return ErrorKind.TIMEOUT

    for cause in _walk_causes(exc):
        if isinstance(cause, ssl.SSLError):
            return ErrorKind.TLS
        if isinstance(cause, ConnectionRefusedError):
            return ErrorKind.CONNECTION_REFUSED
        if isinstance(cause, TimeoutError):
            return ErrorKind.TIMEOUT

    text = " ".join(str(c).lower() for c in _walk_causes(exc))
    if any(m in text for m in _DNS_MARKERS):
        return ErrorKind.DNS
    if any(m in text for m in _REFUSED_MARKERS):
        return ErrorKind.CONNECTION_REFUSED
    if any(m in text for m in _TLS_MARKERS):
        return ErrorKind.TLS
    if isinstance(exc, httpx.TransportError):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN


def is_retryable(kind: ErrorKind) -> bool:
    return kind in _NETWORK_KINDS or kind is ErrorKind.SERVER


def map_provider_error(exc: ProviderError) -> tuple[int, str]:
    """Return (http_status, user-facing message) for a submit-time failure."""
    kind = exc.kind
    if kind is ErrorKind.AUTH:
        return 502, "Authentication with music provider failed"
    if kind is ErrorKind.DNS:
        return 502, "Music provider connectivity error: DNS lookup failed"
    if kind is ErrorKind.CONNECTION_REFUSED:
        return 502, "Music provider connectivity error: connection refused"
    if kind is ErrorKind.TLS:
        return 502, "Music provider connectivity error: SSL/TLS certificate problem"
    if kind is ErrorKind.TIMEOUT:
        return 504, "Timed out connecting to the music provider"
    if kind in (ErrorKind.NETWORK, ErrorKind.SERVER):
        return 502, "Music provider is unavailable. Please try again."
    if isinstance(exc, ProviderGenerationError):
        return 422, "Music generation failed"
    return 500, "Could not generate the song. Please try again."
