"""Map HTTP responses and transport exceptions onto the SDKError taxonomy.

The status mapping is fixed policy: 400/401/403/404/409 and unlisted 4xx
are permanent, 429 and 502/503/504 are transient, every other 5xx is
treated as a permanent server fault. Transport failures that never
reached the server are status 0 and transient.
"""

from __future__ import annotations

import json
import socket
import ssl
from typing import Any, Dict, Optional, Tuple, Union

import httpx
import requests

from .errors import (
    AuthError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    SDKError,
    ServerError,
    TransportError,
    ValidationError,
)
from .transport import RawResponse

RETRYABLE_SERVER_STATUSES = frozenset({502, 503, 504})

_STATUS_ERRORS: Dict[int, type[SDKError]] = {
    400: ValidationError,
    401: AuthError,
    403: AuthError,
    404: NotFoundError,
    409: ConflictError,
}

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "failed to resolve",
)


def _causes(exc: BaseException):
    seen = set()
    stack: list = [exc]
    while stack:
        current = stack.pop()
        if not isinstance(current, BaseException) or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.extend((current.__cause__, current.__context__, getattr(current, "reason", None)))
        # requests keeps the urllib3 error on ``args`` rather than chaining it
        stack.extend(arg for arg in current.args if isinstance(arg, BaseException))


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        # HTTP-date form is not supported; fall back to computed backoff
        return None
    return seconds if seconds >= 0 else None


class ErrorClassifier:
    """Classifies raw responses and transport exceptions.

    ``max_body`` bounds how much of an unparseable error body is copied into
    the error message.
    """

    def __init__(self, max_body: int = 512) -> None:
        self.max_body = max_body

    def classify(self, failure: Union[RawResponse, BaseException]) -> SDKError:
        if isinstance(failure, RawResponse):
            return self.classify_response(failure)
        return self.classify_exception(failure)

    def classify_response(self, resp: RawResponse) -> SDKError:
        status = resp.status_code
        message, code, meta = self._extract(resp)
        if status in _STATUS_ERRORS:
            return _STATUS_ERRORS[status](message, status, code=code, meta=meta, retryable=False)
        if status == 429:
            retry_after = _parse_retry_after(_header(resp.headers, "Retry-After"))
            return RateLimitedError(message, retry_after=retry_after, status_code=status, code=code, meta=meta)
        if 400 <= status < 500:
            return BadRequestError(message, status, code=code, meta=meta, retryable=False)
        if status >= 500:
            return ServerError(message, status, code=code, meta=meta, retryable=status in RETRYABLE_SERVER_STATUSES)
        return SDKError(message or f"unexpected status {status}", status, code=code, meta=meta, retryable=False)

    def classify_exception(self, exc: BaseException) -> SDKError:
        if isinstance(exc, SDKError):
            return exc
        category = self._category(exc)
        err = TransportError(str(exc) or type(exc).__name__, category=category)
        err.__cause__ = exc
        return err

    def _category(self, exc: BaseException) -> str:
        if isinstance(exc, (requests.Timeout, httpx.TimeoutException, socket.timeout, TimeoutError)):
            return "timeout"
        for cause in _causes(exc):
            if isinstance(cause, (ssl.SSLError, requests.exceptions.SSLError)):
                return "tls"
            if isinstance(cause, socket.gaierror):
                return "dns"
            if any(marker in str(cause).lower() for marker in _DNS_MARKERS):
                return "dns"
        if isinstance(exc, (requests.ConnectionError, httpx.ConnectError, ConnectionError)):
            return "connection"
        return "network"

    def _extract(self, resp: RawResponse) -> Tuple[str, Any, Dict[str, Any]]:
        fallback = self._truncate(resp.body)
        try:
            data = json.loads(resp.body) if resp.body else None
        except (ValueError, UnicodeDecodeError):
            data = None
        if not isinstance(data, dict):
            meta = {"raw": fallback} if fallback else {}
            return fallback or f"HTTP {resp.status_code}", None, meta

        meta: Dict[str, Any] = {}
        if isinstance(data.get("meta"), dict):
            meta.update(data["meta"])
        code = data.get("error_code", data.get("errorCode"))
        message = data.get("message")
        error = data.get("error")
        if isinstance(error, dict):
            message = message or error.get("message")
            code = code if code is not None else error.get("code")
        elif isinstance(error, str) and error:
            if message:
                meta.setdefault("error", error)
            else:
                message = error
        if code in ("", 0):
            code = None
        if not message:
            message = fallback or f"HTTP {resp.status_code}"
        return str(message), code, meta

    def _truncate(self, body: bytes) -> str:
        if not body:
            return ""
        text = body[: self.max_body].decode("utf-8", errors="replace").strip()
        if len(body) > self.max_body:
            text += "...(truncated)"
        return text


def _header(headers: Any, name: str) -> Optional[str]:
    if not headers:
        return None
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                return candidate
    return value
