"""Generic polling for asynchronous resource state changes.

``Waiter.wait`` calls a probe until it reports a terminal state, the
budget runs out, or the caller cancels:

    Polling -> Succeeded | Failed | TimedOut | Cancelled

A probe returns a ``ProbeResult`` (or a ``(succeeded, failed[, state])``
tuple), or any raw observed value which is then judged by the
``success``/``failure`` predicates of the ``WaitSpec``. Resource helpers in
``cloudsdk.waiters`` are thin closures over this loop.

The first probe runs immediately; the interval is slept between probes
only, and every sleep is cut short by cancellation.
"""

from __future__ import annotations

import enum
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, NamedTuple, Optional, Union

from .config import Settings, settings as current_settings
from .context import Context
from .errors import (
    CancellationError,
    ContextCancelledError,
    SDKError,
    WaitFailedError,
    WaitTimedOutError,
)


class WaitState(str, enum.Enum):
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class ProbeResult(NamedTuple):
    succeeded: bool
    failed: bool
    state: str = ""
    reason: Optional[str] = None


Probe = Callable[[Context], Union[ProbeResult, tuple, Any, Awaitable[Any]]]


@dataclass(frozen=True)
class WaitSpec:
    """Polling budget and terminal predicates for one wait.

    Whichever of ``max_attempts``, ``max_wait`` and the caller's deadline is
    reached first ends the wait. When neither bound is given the client's
    ``wait_max`` applies.
    """

    interval: Optional[float] = None
    max_attempts: Optional[int] = None
    max_wait: Optional[float] = None
    success: Optional[Callable[[Any], bool]] = None
    failure: Optional[Callable[[Any], bool]] = None
    describe: Optional[Callable[[Any], str]] = None
    reason: Optional[Callable[[Any], Optional[str]]] = None
    backoff: float = 1.0
    max_interval: float = 30.0

    def __post_init__(self) -> None:
        if self.interval is not None and self.interval < 0:
            raise ValueError("interval must be >= 0")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.max_wait is not None and self.max_wait < 0:
            raise ValueError("max_wait must be >= 0")
        if self.backoff < 1.0:
            raise ValueError("backoff multiplier must be >= 1.0")


class _Run:
    """State of a single ``wait`` call; discarded when it returns."""

    def __init__(self, caller: Context, spec: WaitSpec, defaults: Settings, log) -> None:
        self.caller = caller
        self.spec = spec
        self.log = log
        self.interval = spec.interval if spec.interval is not None else defaults.wait_interval
        max_wait = spec.max_wait
        if max_wait is None and spec.max_attempts is None:
            max_wait = defaults.wait_max
        self.started = time.monotonic()
        self.ctx = caller.with_timeout(max_wait) if max_wait is not None else Context(parent=caller)
        self.own_deadline = self.started + max_wait if max_wait is not None else None
        self.attempts = 0
        self.state = WaitState.POLLING
        self.last_state: Optional[str] = None

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def _interpret(self, value: Any) -> ProbeResult:
        if isinstance(value, ProbeResult):
            return value
        if isinstance(value, tuple) and 2 <= len(value) <= 4 and all(isinstance(v, bool) for v in value[:2]):
            return ProbeResult(*value)
        if self.spec.success is None and self.spec.failure is None:
            raise TypeError("probe returned a raw state but the WaitSpec has no success/failure predicate")
        succeeded = bool(self.spec.success(value)) if self.spec.success else False
        failed = bool(self.spec.failure(value)) if self.spec.failure else False
        state = self.spec.describe(value) if self.spec.describe else str(value)
        reason = self.spec.reason(value) if self.spec.reason else None
        return ProbeResult(succeeded, failed, state, reason)

    def observe(self, value: Any) -> bool:
        """Record a probe result; True when the wait succeeded."""
        result = self._interpret(value)
        self.last_state = result.state or self.last_state
        self.log.debug(
            "poll %d: state=%r succeeded=%s failed=%s elapsed=%.2fs",
            self.attempts,
            result.state,
            result.succeeded,
            result.failed,
            self.elapsed,
        )
        if result.failed:
            self.state = WaitState.FAILED
            raise WaitFailedError(result.state or "failed", result.reason)
        if result.succeeded:
            self.state = WaitState.SUCCEEDED
            return True
        return False

    def probe_failed(self, err: SDKError) -> None:
        """Decide whether a probe error ends the wait; returns to keep polling."""
        if self.caller.cancelled:
            self.state = WaitState.CANCELLED
            raise ContextCancelledError() from err
        if isinstance(err, CancellationError):
            if self.ctx.expired:
                raise self.timed_out() from err
            raise err
        if not err.retryable:
            self.state = WaitState.FAILED
            raise err
        self.log.debug("poll %d: transient error, continuing: %s", self.attempts, err)

    def next_delay(self) -> float:
        """Interval to sleep before the next probe, or raise if the budget is spent."""
        if self.spec.max_attempts is not None and self.attempts >= self.spec.max_attempts:
            raise self.timed_out("max_attempts")
        if self.ctx.expired:
            raise self.timed_out()
        delay = self.interval
        if self.spec.backoff > 1.0:
            self.interval = min(self.interval * self.spec.backoff, self.spec.max_interval)
        return delay

    def interrupted(self) -> Exception:
        if self.caller.cancelled:
            self.state = WaitState.CANCELLED
            return ContextCancelledError()
        return self.timed_out()

    def timed_out(self, reason: Optional[str] = None) -> WaitTimedOutError:
        if reason is None:
            caller_deadline = self.caller.deadline
            bound_by_caller = caller_deadline is not None and (
                self.own_deadline is None or caller_deadline <= self.own_deadline
            )
            reason = "deadline" if bound_by_caller else "max_wait"
        self.state = WaitState.TIMED_OUT
        self.log.debug("wait timed out after %d polls (%s)", self.attempts, reason)
        return WaitTimedOutError(self.attempts, self.elapsed, reason, self.last_state)


class Waiter:
    """Blocking polling loop; holds only defaults, never per-call state."""

    def __init__(self, settings_obj: Settings | None = None) -> None:
        self._settings = settings_obj or current_settings()
        self._log = self._settings.get_logger("cloudsdk.waiter")

    def wait(self, ctx: Context | None, probe: Probe, spec: WaitSpec | None = None) -> None:
        run = _Run(ctx or Context.background(), spec or WaitSpec(), self._settings, self._log)
        while True:
            if run.caller.cancelled:
                raise run.interrupted()
            run.attempts += 1
            try:
                value = probe(run.ctx)
            except SDKError as err:
                run.probe_failed(err)
            else:
                if run.observe(value):
                    return
            if not run.ctx.sleep(run.next_delay()):
                raise run.interrupted()


class AsyncWaiter(Waiter):
    """Asyncio variant; probes may be coroutine functions or plain callables."""

    async def wait(self, ctx: Context | None, probe: Probe, spec: WaitSpec | None = None) -> None:
        run = _Run(ctx or Context.background(), spec or WaitSpec(), self._settings, self._log)
        while True:
            if run.caller.cancelled:
                raise run.interrupted()
            run.attempts += 1
            try:
                value = probe(run.ctx)
                if inspect.isawaitable(value):
                    value = await value
            except SDKError as err:
                run.probe_failed(err)
            else:
                if run.observe(value):
                    return
            if not await run.ctx.async_sleep(run.next_delay()):
                raise run.interrupted()
