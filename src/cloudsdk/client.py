"""SDK entry points owning one executor and one waiter for their lifetime.

Resource sub-clients depend only on ``do`` and ``wait``; ``get`` is a
shortcut for the common safe read.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

import httpx
import requests

from .config import Settings, settings
from .context import Context
from .errors import AuthError, BadRequestError
from .executor import AsyncRequestExecutor, RequestExecutor, Target
from .transport import RawResponse, Request
from .waiter import AsyncWaiter, Probe, WaitSpec, Waiter


def _resolve_settings(base_url: str | None, token: str | None, overrides: Mapping[str, Any]) -> Settings:
    s = settings()
    for k in overrides:
        if not hasattr(s, k):
            raise AttributeError(f"Unknown setting: {k}")
    s = replace(s, **overrides)
    if base_url is not None:
        s.base_url = base_url
    if token is not None:
        s.token = token

    if not s.base_url:
        raise BadRequestError("base_url is required")
    parsed = urlparse(s.base_url)
    if not parsed.scheme or not parsed.netloc:
        raise BadRequestError(f"base URL must include scheme and host (e.g., https://), got {s.base_url!r}")
    if not s.token:
        raise AuthError("token cannot be empty")
    return s


class Client:
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        session: requests.Session | None = None,
        **overrides: Any,
    ) -> None:
        self._settings = _resolve_settings(base_url, token, overrides)
        self._executor = RequestExecutor(self._settings, session=session)
        self._waiter = Waiter(self._settings)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    @property
    def waiter(self) -> Waiter:
        return self._waiter

    def do(self, ctx: Context | None, request: Request, target: Target = None) -> RawResponse:
        return self._executor.do(ctx, request, target)

    def get(
        self,
        ctx: Context | None,
        path: str,
        *,
        query: Optional[Mapping[str, Any]] = None,
        target: Target = True,
    ) -> RawResponse:
        return self._executor.do(ctx, Request("GET", path, query=query), target)

    def wait(self, ctx: Context | None, probe: Probe, spec: WaitSpec | None = None) -> None:
        self._waiter.wait(ctx, probe, spec)

    def close(self) -> None:
        self._executor.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={self._settings.base_url!r})"


class AsyncClient:
    """Asynchronous variant using httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        **overrides: Any,
    ) -> None:
        self._settings = _resolve_settings(base_url, token, overrides)
        self._executor = AsyncRequestExecutor(self._settings, client=http_client)
        self._waiter = AsyncWaiter(self._settings)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def executor(self) -> AsyncRequestExecutor:
        return self._executor

    @property
    def waiter(self) -> AsyncWaiter:
        return self._waiter

    async def do(self, ctx: Context | None, request: Request, target: Target = None) -> RawResponse:
        return await self._executor.do(ctx, request, target)

    async def get(
        self,
        ctx: Context | None,
        path: str,
        *,
        query: Optional[Mapping[str, Any]] = None,
        target: Target = True,
    ) -> RawResponse:
        return await self._executor.do(ctx, Request("GET", path, query=query), target)

    async def wait(self, ctx: Context | None, probe: Probe, spec: WaitSpec | None = None) -> None:
        await self._waiter.wait(ctx, probe, spec)

    async def aclose(self) -> None:
        await self._executor.aclose()

    async def __aenter__(self) -> AsyncClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={self._settings.base_url!r})"
