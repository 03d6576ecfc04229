import json
import socket
import ssl

import httpx
import pytest
import requests

from cloudsdk import (
    AuthError,
    BadRequestError,
    ConflictError,
    ErrorClassifier,
    NotFoundError,
    RateLimitedError,
    RawResponse,
    SDKError,
    ServerError,
    TransportError,
    ValidationError,
)


def _resp(status, payload=None, body=None, headers=None):
    if body is None:
        body = json.dumps(payload).encode() if payload is not None else b""
    return RawResponse(status, headers or {}, body)


@pytest.mark.parametrize(
    "status, cls",
    [
        (400, ValidationError),
        (401, AuthError),
        (403, AuthError),
        (404, NotFoundError),
        (409, ConflictError),
        (422, BadRequestError),
        (500, ServerError),
        (501, ServerError),
    ],
)
def test_permanent_statuses(status, cls):
    err = ErrorClassifier().classify(_resp(status))
    assert type(err) is cls
    assert err.status_code == status
    assert err.retryable is False


@pytest.mark.parametrize("status", [502, 503, 504])
def test_gateway_statuses_are_retryable(status):
    err = ErrorClassifier().classify_response(_resp(status))
    assert isinstance(err, ServerError)
    assert err.retryable is True


def test_rate_limited_parses_retry_after():
    err = ErrorClassifier().classify_response(_resp(429, headers={"retry-after": "2"}))
    assert isinstance(err, RateLimitedError)
    assert err.retryable is True
    assert err.retry_after == 2.0
    assert err.meta["retry_after"] == 2.0


def test_rate_limited_ignores_http_date_retry_after():
    err = ErrorClassifier().classify_response(
        _resp(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})
    )
    assert err.retry_after is None


def test_extracts_wire_error_fields():
    err = ErrorClassifier().classify_response(
        _resp(409, {"error_code": "SERVER_NAME_TAKEN", "message": "name already in use"})
    )
    assert err.message == "name already in use"
    assert err.code == "SERVER_NAME_TAKEN"
    assert str(err) == "HTTP 409 (code SERVER_NAME_TAKEN): name already in use"


def test_extracts_camel_case_error_code_and_meta():
    err = ErrorClassifier().classify_response(
        _resp(400, {"errorCode": 1001, "message": "invalid flavor", "meta": {"field": "flavor_id"}})
    )
    assert err.code == 1001
    assert err.meta == {"field": "flavor_id"}


def test_extracts_error_string_and_nested_error():
    classifier = ErrorClassifier()
    assert classifier.classify_response(_resp(403, {"error": "forbidden"})).message == "forbidden"
    nested = classifier.classify_response(_resp(404, {"error": {"message": "no such volume", "code": "E404"}}))
    assert nested.message == "no such volume"
    assert nested.code == "E404"


def test_non_json_body_is_truncated():
    body = b"<html>" + b"x" * 2000 + b"</html>"
    err = ErrorClassifier(max_body=64).classify_response(_resp(500, body=body))
    assert err.message.endswith("...(truncated)")
    assert len(err.message) < 100
    assert err.meta["raw"] == err.message


def test_empty_body_falls_back_to_status():
    err = ErrorClassifier().classify_response(_resp(503))
    assert err.message == "HTTP 503"


def test_json_without_known_fields_uses_raw_text():
    err = ErrorClassifier().classify_response(_resp(400, {"detail": "bad"}))
    assert "detail" in err.message


@pytest.mark.parametrize(
    "exc, category",
    [
        (requests.ConnectTimeout("connect timed out"), "timeout"),
        (requests.ReadTimeout("read timed out"), "timeout"),
        (httpx.ReadTimeout("read timed out"), "timeout"),
        (requests.ConnectionError(socket.gaierror(-2, "Name or service not known")), "dns"),
        (httpx.ConnectError("[Errno -3] Temporary failure in name resolution"), "dns"),
        (requests.exceptions.SSLError("certificate verify failed"), "tls"),
        (ssl.SSLError(1, "handshake failure"), "tls"),
        (httpx.ConnectError("[Errno 111] Connection refused"), "connection"),
        (ConnectionRefusedError(111, "Connection refused"), "connection"),
        (httpx.RemoteProtocolError("peer closed connection"), "network"),
    ],
)
def test_transport_failures(exc, category):
    err = ErrorClassifier().classify(exc)
    assert isinstance(err, TransportError)
    assert err.status_code == 0
    assert err.retryable is True
    assert err.category == category
    assert err.meta["category"] == category
    assert err.__cause__ is exc
    assert str(err).startswith("SDK error: ")


def test_sdk_errors_pass_through():
    original = NotFoundError("gone", 404)
    assert ErrorClassifier().classify_exception(original) is original


def test_base_error_formatting():
    assert str(SDKError("boom")) == "SDK error: boom"
    assert str(SDKError("boom", 502)) == "HTTP 502: boom"
