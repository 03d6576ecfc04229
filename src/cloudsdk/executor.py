"""Request execution with retry for safe calls.

Every API call made by the resource clients goes through ``do``:

- the effective deadline is the earlier of the caller's and ``timeout``
- the JSON body and bearer token are attached here (the token is never logged)
- 2xx responses are decoded into ``target`` when given
- anything else is classified; only safe requests with a retryable error
  are retried, sleeping ``Backoff.next_delay`` between attempts
- a retryable failure that outlives the budget raises
  ``RetriesExhaustedError`` carrying the attempt count

Executors keep no per-call state and may be shared by any number of
threads (sync) or tasks (async); the pooled transport is the only shared
resource.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

import httpx
import requests
from requests.adapters import HTTPAdapter

from .backoff import Backoff
from .classify import ErrorClassifier
from .config import Settings, settings as current_settings
from .context import Context
from .errors import (
    ContextCancelledError,
    DeadlineExceededError,
    RateLimitedError,
    RetriesExhaustedError,
    SDKError,
)
from .policy import Attempt
from .transport import RawResponse, Request

Target = Union[bool, type, Callable[[Any], Any], None]


class _ExecutorBase:
    def __init__(
        self,
        settings_obj: Settings | None = None,
        *,
        backoff: Backoff | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        s = settings_obj or current_settings()
        if not s.base_url:
            raise ValueError("base_url is required")
        self._settings = s
        self._base_url = s.base_url.rstrip("/")
        self._policy = s.retry
        self._backoff = backoff or Backoff.from_policy(s.retry)
        self._classifier = classifier or ErrorClassifier(max_body=s.max_error_body)
        self._log = s.get_logger("cloudsdk.executor")

    @property
    def settings(self) -> Settings:
        return self._settings

    def _call_context(self, ctx: Context | None) -> Context:
        return (ctx or Context.background()).with_timeout(self._settings.timeout)

    def _url(self, request: Request) -> str:
        path = request.path if request.path.startswith("/") else "/" + request.path
        return self._base_url + path

    def _headers(self, request: Request, has_body: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": self._settings.user_agent}
        if has_body:
            headers["Content-Type"] = "application/json"
        for key, value in request.headers.items():
            if key.lower() != "authorization":
                headers[key] = value
        if self._settings.token:
            headers["Authorization"] = f"Bearer {self._settings.token}"
        return headers

    def _attempt_timeout(self, ctx: Context) -> float:
        remaining = ctx.remaining()
        if remaining is None:
            return self._settings.timeout
        if remaining <= 0:
            raise DeadlineExceededError()
        return remaining

    def _transport_failure(self, ctx: Context, exc: BaseException) -> SDKError:
        if ctx.cancelled:
            return ContextCancelledError()
        if ctx.expired:
            err = DeadlineExceededError()
            err.__cause__ = exc
            return err
        return self._classifier.classify_exception(exc)

    def _decode(self, resp: RawResponse, target: Target) -> RawResponse:
        if target is None or target is False or not resp.body:
            return resp
        try:
            payload = resp.json()
            resp.data = payload if target is True or target is dict else target(payload)
        except (ValueError, TypeError, KeyError) as exc:
            raise SDKError("failed to parse response", resp.status_code) from exc
        return resp

    def _retry_delay(self, ctx: Context, request: Request, err: SDKError, attempt: Attempt) -> float:
        """Delay before the next attempt, or raise the error that ends the call."""
        if not request.is_safe or not self._policy.allows(err):
            raise err
        if attempt.number >= self._policy.max_attempts:
            self._log.debug(
                "max retries reached: %s %s attempts=%d", request.method, request.path, attempt.number
            )
            raise RetriesExhaustedError(err, attempt.number) from err
        delay = self._backoff.next_delay(attempt.number)
        if isinstance(err, RateLimitedError) and err.retry_after and self._policy.respect_retry_after:
            delay = min(max(delay, err.retry_after), self._policy.max_delay)
        remaining = ctx.remaining()
        if remaining is not None and remaining <= delay:
            self._log.debug(
                "deadline leaves no room for retry: %s %s attempts=%d", request.method, request.path, attempt.number
            )
            exhausted = RetriesExhaustedError(err, attempt.number)
            exhausted.meta["reason"] = "deadline"
            raise exhausted from err
        self._log.debug(
            "retrying request: %s %s attempt=%d status=%d backoff=%.3fs elapsed=%.3fs",
            request.method,
            request.path,
            attempt.number,
            err.status_code,
            delay,
            attempt.elapsed,
        )
        return delay


class RequestExecutor(_ExecutorBase):
    """Blocking executor over a pooled ``requests.Session``."""

    def __init__(
        self,
        settings_obj: Settings | None = None,
        *,
        session: requests.Session | None = None,
        backoff: Backoff | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        super().__init__(settings_obj, backoff=backoff, classifier=classifier)
        self._owns_session = session is None
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=self._settings.pool_maxsize, pool_maxsize=self._settings.pool_maxsize)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self._session = session

    def do(self, ctx: Context | None, request: Request, target: Target = None) -> RawResponse:
        ctx = self._call_context(ctx)
        started = time.monotonic()
        number = 0
        while True:
            number += 1
            ctx.raise_if_done()
            self._log.debug("sending request: %s %s attempt=%d", request.method, request.path, number)
            try:
                resp = self._send(ctx, request)
            except SDKError as err:
                if not err.retryable:
                    raise
                failure = err
            else:
                if resp.ok:
                    return self._decode(resp, target)
                failure = self._classifier.classify_response(resp)

            delay = self._retry_delay(ctx, request, failure, Attempt(number, time.monotonic() - started, failure))
            if not ctx.sleep(delay):
                raise (ctx.error() or ContextCancelledError()) from failure

    def _send(self, ctx: Context, request: Request) -> RawResponse:
        body = request.encode_body()
        timeout = self._attempt_timeout(ctx)
        try:
            resp = self._session.request(
                request.method,
                self._url(request),
                params=request.query,
                data=body,
                headers=self._headers(request, body is not None),
                timeout=timeout,
                verify=self._settings.verify,
            )
        except (requests.RequestException, OSError) as exc:
            raise self._transport_failure(ctx, exc) from exc
        return RawResponse(resp.status_code, resp.headers, resp.content or b"")

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> RequestExecutor:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class AsyncRequestExecutor(_ExecutorBase):
    """Asynchronous variant using httpx.AsyncClient."""

    def __init__(
        self,
        settings_obj: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        backoff: Backoff | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        super().__init__(settings_obj, backoff=backoff, classifier=classifier)
        self._owns_client = client is None
        if client is None:
            limits = httpx.Limits(max_connections=self._settings.pool_maxsize)
            client = httpx.AsyncClient(limits=limits, verify=self._settings.verify)
        self._client = client

    async def do(self, ctx: Context | None, request: Request, target: Target = None) -> RawResponse:
        ctx = self._call_context(ctx)
        started = time.monotonic()
        number = 0
        while True:
            number += 1
            ctx.raise_if_done()
            self._log.debug("sending request: %s %s attempt=%d", request.method, request.path, number)
            try:
                resp = await self._send(ctx, request)
            except SDKError as err:
                if not err.retryable:
                    raise
                failure = err
            else:
                if resp.ok:
                    return self._decode(resp, target)
                failure = self._classifier.classify_response(resp)

            delay = self._retry_delay(ctx, request, failure, Attempt(number, time.monotonic() - started, failure))
            if not await ctx.async_sleep(delay):
                raise (ctx.error() or ContextCancelledError()) from failure

    async def _send(self, ctx: Context, request: Request) -> RawResponse:
        body = request.encode_body()
        timeout = self._attempt_timeout(ctx)
        sending = asyncio.ensure_future(
            self._client.request(
                request.method,
                self._url(request),
                params=_query(request.query),
                content=body,
                headers=self._headers(request, body is not None),
                timeout=timeout,
            )
        )
        cancelled = asyncio.ensure_future(ctx.async_cancelled())
        try:
            done, _ = await asyncio.wait(
                {sending, cancelled}, timeout=ctx.remaining(), return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            pending = [task for task in (sending, cancelled) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        if sending not in done:
            if ctx.cancelled:
                raise ContextCancelledError()
            raise DeadlineExceededError()
        try:
            resp = sending.result()
        except (httpx.HTTPError, OSError) as exc:
            raise self._transport_failure(ctx, exc) from exc
        return RawResponse(resp.status_code, resp.headers, resp.content or b"")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncRequestExecutor:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def _query(query: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not query:
        return None
    return {k: v for k, v in query.items() if v is not None}
