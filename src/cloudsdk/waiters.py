"""Resource-specific wait helpers built on the generic waiter.

Each helper takes a ``fetch(ctx)`` callable returning the resource as a
mapping (optionally wrapped, e.g. ``{"server": {...}}``) and supplies its
own success/failure states. Passing an ``AsyncWaiter`` together with a
coroutine ``fetch`` makes the helper return an awaitable.

Example:
    waiters.wait_for_server_active(
        client.waiter, ctx, lambda c: client.get(c, f"/servers/{server_id}").data,
    )
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Collection, Mapping, Optional, Union

from .context import Context
from .errors import NotFoundError
from .waiter import ProbeResult, WaitSpec, Waiter

Fetch = Callable[[Context], Union[Mapping[str, Any], Awaitable[Mapping[str, Any]]]]

SERVER_ACTIVE = "ACTIVE"
SERVER_BUILD = "BUILD"
SERVER_SHUTOFF = "SHUTOFF"
SERVER_ERROR = "ERROR"
SERVER_DELETED = "DELETED"

VOLUME_AVAILABLE = "available"
VOLUME_IN_USE = "in-use"
VOLUME_ERROR = "error"

FLOATING_IP_ACTIVE = "ACTIVE"
FLOATING_IP_REJECTED = "REJECTED"

TAG_ACTIVE = "active"
TAG_AVAILABLE = "available"
TAG_ERROR = "error"

STATUS_WAIT = WaitSpec(interval=5.0, max_wait=600.0, backoff=1.2, max_interval=30.0)
DELETE_WAIT = WaitSpec(interval=3.0, max_wait=300.0)


def _unwrap(payload: Any, key: Optional[str]) -> Mapping[str, Any]:
    if key and isinstance(payload, Mapping) and isinstance(payload.get(key), Mapping):
        return payload[key]
    if not isinstance(payload, Mapping):
        raise TypeError(f"fetch must return a mapping, got {type(payload).__name__}")
    return payload


def judge_status(
    resource: Mapping[str, Any],
    target: str,
    failures: Collection[str] = (),
) -> ProbeResult:
    """Compare a resource's ``status`` with the target and failure states."""
    status = str(resource.get("status") or "")
    reason = resource.get("status_reason") or None
    state = f"{status} ({reason})" if reason else status
    failed = status in failures and status != target
    return ProbeResult(status == target, failed, state, reason)


async def _judged(pending: Awaitable[Any], judge: Callable[[Any], ProbeResult]) -> ProbeResult:
    return judge(await pending)


def status_probe(
    fetch: Fetch,
    target: str,
    failures: Collection[str] = (),
    key: Optional[str] = None,
) -> Callable[[Context], Any]:
    def judge(payload: Any) -> ProbeResult:
        return judge_status(_unwrap(payload, key), target, failures)

    def probe(ctx: Context) -> Any:
        payload = fetch(ctx)
        if inspect.isawaitable(payload):
            return _judged(payload, judge)
        return judge(payload)

    return probe


def wait_for_status(
    waiter: Waiter,
    ctx: Context | None,
    fetch: Fetch,
    target: str,
    failures: Collection[str] = (),
    *,
    key: Optional[str] = None,
    spec: WaitSpec | None = None,
):
    if not target:
        raise ValueError("target status is required")
    return waiter.wait(ctx, status_probe(fetch, target, failures, key), spec or STATUS_WAIT)


def wait_for_server_status(waiter: Waiter, ctx: Context | None, fetch: Fetch, target: str, spec: WaitSpec | None = None):
    """Poll a server until ``target``; an ERROR status fails the wait unless it is the target."""
    return wait_for_status(waiter, ctx, fetch, target, (SERVER_ERROR,), key="server", spec=spec)


def wait_for_server_active(waiter: Waiter, ctx: Context | None, fetch: Fetch, spec: WaitSpec | None = None):
    return wait_for_server_status(waiter, ctx, fetch, SERVER_ACTIVE, spec)


def wait_for_server_shutoff(waiter: Waiter, ctx: Context | None, fetch: Fetch, spec: WaitSpec | None = None):
    return wait_for_server_status(waiter, ctx, fetch, SERVER_SHUTOFF, spec)


def wait_for_server_deleted(waiter: Waiter, ctx: Context | None, fetch: Fetch, spec: WaitSpec | None = None):
    """Poll until fetching the server reports 404 (or a DELETED status)."""

    def judge(payload: Any) -> ProbeResult:
        return judge_status(_unwrap(payload, "server"), SERVER_DELETED, (SERVER_ERROR,))

    async def judged(pending: Awaitable[Any]) -> ProbeResult:
        try:
            payload = await pending
        except NotFoundError:
            return ProbeResult(True, False, SERVER_DELETED)
        return judge(payload)

    def probe(ctx: Context) -> Any:
        try:
            payload = fetch(ctx)
        except NotFoundError:
            return ProbeResult(True, False, SERVER_DELETED)
        if inspect.isawaitable(payload):
            return judged(payload)
        return judge(payload)

    return waiter.wait(ctx, probe, spec or DELETE_WAIT)


def wait_for_volume_status(waiter: Waiter, ctx: Context | None, fetch: Fetch, target: str, spec: WaitSpec | None = None):
    return wait_for_status(waiter, ctx, fetch, target, (VOLUME_ERROR,), key="volume", spec=spec)


def wait_for_volume_available(waiter: Waiter, ctx: Context | None, fetch: Fetch, spec: WaitSpec | None = None):
    return wait_for_volume_status(waiter, ctx, fetch, VOLUME_AVAILABLE, spec)


def wait_for_volume_in_use(waiter: Waiter, ctx: Context | None, fetch: Fetch, spec: WaitSpec | None = None):
    return wait_for_volume_status(waiter, ctx, fetch, VOLUME_IN_USE, spec)


def wait_for_floating_ip_active(waiter: Waiter, ctx: Context | None, fetch: Fetch, spec: WaitSpec | None = None):
    return wait_for_status(
        waiter, ctx, fetch, FLOATING_IP_ACTIVE, (FLOATING_IP_REJECTED,), key="floatingip", spec=spec
    )


def wait_for_tag_status(waiter: Waiter, ctx: Context | None, fetch: Fetch, target: str, spec: WaitSpec | None = None):
    return wait_for_status(waiter, ctx, fetch, target, (TAG_ERROR,), key="tag", spec=spec)


def wait_for_tag_active(waiter: Waiter, ctx: Context | None, fetch: Fetch, spec: WaitSpec | None = None):
    return wait_for_tag_status(waiter, ctx, fetch, TAG_ACTIVE, spec)


def wait_for_tag_available(waiter: Waiter, ctx: Context | None, fetch: Fetch, spec: WaitSpec | None = None):
    return wait_for_tag_status(waiter, ctx, fetch, TAG_AVAILABLE, spec)
