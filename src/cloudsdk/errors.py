from __future__ import annotations

from typing import Any


class SDKError(Exception):
    """Base error for SDK exceptions (transport/runtime/API).

    ``status_code`` is the HTTP status, or 0 for failures that never reached
    the server. ``retryable`` is the classifier's verdict and is consumed by
    the request executor; callers normally branch on the subclass instead.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str = "",
        status_code: int = 0,
        code: str | int | None = None,
        meta: dict | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.meta = meta or {}
        if retryable is not None:
            self.retryable = retryable

    def __str__(self) -> str:
        if self.status_code == 0:
            return f"SDK error: {self.message}"
        if self.code not in (None, "", 0):
            return f"HTTP {self.status_code} (code {self.code}): {self.message}"
        return f"HTTP {self.status_code}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class TransportError(SDKError):
    """Network/connection failure; the request may never have reached the server."""

    retryable = True

    def __init__(self, message: str = "", category: str = "network", **kw: Any) -> None:
        meta = dict(kw.pop("meta", None) or {})
        meta.setdefault("category", category)
        super().__init__(f"{category} error: {message}" if message else f"{category} error", 0, meta=meta, **kw)
        self.category = category


class BadRequestError(SDKError):
    """4xx client-side invalid request."""


class ValidationError(BadRequestError):
    """400 Bad Request."""


class AuthError(SDKError):
    """Authentication/authorization failure (401/403)."""


class NotFoundError(SDKError):
    """404 Not Found."""


class ConflictError(SDKError):
    """409 Conflict."""


class RateLimitedError(SDKError):
    """429 Too Many Requests; may carry retry_after in seconds."""

    retryable = True

    def __init__(self, message: str = "", retry_after: float | None = None, **kw: Any) -> None:
        kw.setdefault("status_code", 429)
        meta = dict(kw.pop("meta", None) or {})
        if retry_after is not None:
            meta["retry_after"] = retry_after
        super().__init__(message, meta=meta, **kw)
        self.retry_after = retry_after


class ServerError(SDKError):
    """5xx response. Only gateway/availability statuses are retryable."""


class RetriesExhaustedError(SDKError):
    """A retryable failure persisted through every permitted attempt."""

    def __init__(self, last_error: SDKError, attempts: int) -> None:
        super().__init__(
            f"gave up after {attempts} attempts: {last_error.message}",
            last_error.status_code,
            code=last_error.code,
            meta=dict(last_error.meta, attempts=attempts),
            retryable=False,
        )
        self.last_error = last_error
        self.attempts = attempts
        self.__cause__ = last_error


class CancellationError(SDKError):
    """The caller's context ended the operation."""


class ContextCancelledError(CancellationError):
    """The caller cancelled the context."""

    def __init__(self, message: str = "request canceled", **kw: Any) -> None:
        kw.setdefault("meta", {"category": "canceled"})
        super().__init__(message, 0, **kw)


class DeadlineExceededError(CancellationError):
    """The effective deadline of the call passed."""

    def __init__(self, message: str = "request timeout", **kw: Any) -> None:
        kw.setdefault("meta", {"category": "timeout"})
        super().__init__(message, 0, **kw)


class WaitError(SDKError):
    """Base for polling outcomes other than success."""


class WaitFailedError(WaitError):
    """The resource reached an explicit failure state while being polled."""

    def __init__(self, state: str, reason: str | None = None) -> None:
        message = f"resource entered failure state: {state}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, 0, meta={"state": state, "reason": reason})
        self.state = state
        self.reason = reason


class WaitTimedOutError(WaitError):
    """The polling budget ran out before the resource reached a terminal state."""

    def __init__(self, attempts: int, elapsed: float, reason: str, last_state: str | None = None) -> None:
        message = f"wait timeout after {attempts} polls in {elapsed:.1f}s ({reason})"
        if last_state:
            message = f"{message}, last state: {last_state}"
        super().__init__(
            message,
            0,
            meta={"attempts": attempts, "elapsed": elapsed, "reason": reason, "last_state": last_state},
        )
        self.attempts = attempts
        self.elapsed = elapsed
        self.reason = reason
        self.last_state = last_state
