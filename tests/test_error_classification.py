"""Tests for the single error classifier and the HTTP mapping built on it."""

import ssl

import httpx
import pytest

from songgen.provider.errors import (
    ErrorKind,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderGenerationError,
    ProviderHTTPError,
    classify_error,
    is_retryable,
    map_provider_error,
)


@pytest.mark.parametrize(
    "status_code,kind",
    [(401, ErrorKind.AUTH), (403, ErrorKind.AUTH), (404, ErrorKind.CLIENT), (429, ErrorKind.CLIENT),
     (500, ErrorKind.SERVER), (503, ErrorKind.SERVER)],
)
def test_classify_status_codes(status_code, kind):
    assert classify_error(status_code=status_code) is kind


def test_classify_timeout():
    assert classify_error(httpx.ConnectTimeout("slow")) is ErrorKind.TIMEOUT


def test_classify_dns_from_message():
    exc = httpx.ConnectError("[Errno -2] Name or service not known")
    assert classify_error(exc) is ErrorKind.DNS


def test_classify_connection_refused_from_cause():
    exc = httpx.ConnectError("connect failed")
    exc.__cause__ = ConnectionRefusedError(111, "Connection refused")
    assert classify_error(exc) is ErrorKind.CONNECTION_REFUSED


def test_classify_tls_from_cause():
    exc = httpx.ConnectError("handshake failed")
    exc.__cause__ = ssl.SSLCertVerificationError("certificate verify failed")
    assert classify_error(exc) is ErrorKind.TLS


def test_classify_generic_transport_error_is_network():
    assert classify_error(httpx.RemoteProtocolError("peer closed")) is ErrorKind.NETWORK


def test_classify_unknown():
    assert classify_error(ValueError("boom")) is ErrorKind.UNKNOWN
    assert classify_error() is ErrorKind.UNKNOWN


def test_provider_error_keeps_its_kind():
    assert classify_error(ProviderAuthError("nope", 401)) is ErrorKind.AUTH


def test_retry_decision_matches_classification():
    assert is_retryable(ErrorKind.SERVER)
    assert is_retryable(ErrorKind.TIMEOUT)
    assert not is_retryable(ErrorKind.AUTH)
    assert not is_retryable(ErrorKind.CLIENT)


class TestMapProviderError:
    def test_auth_is_502(self):
        status, message = map_provider_error(ProviderAuthError("bad key", 401))
        assert status == 502
        assert "Authentication" in message

    def test_timeout_is_504(self):
        status, _ = map_provider_error(ProviderConnectionError("slow", ErrorKind.TIMEOUT))
        assert status == 504

    def test_connectivity_is_502(self):
        for kind in (ErrorKind.DNS, ErrorKind.CONNECTION_REFUSED, ErrorKind.TLS, ErrorKind.NETWORK):
            status, message = map_provider_error(ProviderConnectionError("x", kind))
            assert status == 502, kind

    def test_server_is_502(self):
        status, _ = map_provider_error(ProviderHTTPError("HTTP 503", ErrorKind.SERVER, 503))
        assert status == 502

    def test_generation_failure_is_422(self):
        status, message = map_provider_error(ProviderGenerationError("bad prompt", ErrorKind.CLIENT, 400))
        assert status == 422
        assert message == "Music generation failed"
