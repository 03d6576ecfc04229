"""Explicit cancellation token threaded through every blocking call.

A ``Context`` carries an optional monotonic deadline and a cancel flag.
Children derived with ``with_timeout``/``with_deadline`` inherit the
parent's deadline (the earlier one wins) and are cancelled together with
the parent. Sleeping on a context returns as soon as it is cancelled or
its deadline passes, so no call blocks past cancellation.
"""

from __future__ import annotations

import asyncio
import threading
import time
import weakref
from typing import Callable, Optional

from .errors import ContextCancelledError, DeadlineExceededError


class Context:
    __slots__ = ("_deadline", "_event", "_parent", "_children", "_callbacks", "_lock", "__weakref__")

    def __init__(
        self,
        *,
        timeout: float | None = None,
        deadline: float | None = None,
        parent: Context | None = None,
    ) -> None:
        if timeout is not None:
            by_timeout = time.monotonic() + timeout
            deadline = by_timeout if deadline is None else min(deadline, by_timeout)
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline
        self._event = threading.Event()
        self._parent = parent
        self._children: weakref.WeakSet[Context] = weakref.WeakSet()
        self._callbacks: list[Callable[[], None]] = []
        self._lock = threading.Lock()
        if parent is not None:
            parent._adopt(self)

    @classmethod
    def background(cls) -> Context:
        """A context that is never cancelled and has no deadline."""
        return cls()

    def with_timeout(self, timeout: float) -> Context:
        return Context(timeout=timeout, parent=self)

    def with_deadline(self, deadline: float) -> Context:
        return Context(deadline=deadline, parent=self)

    def _adopt(self, child: Context) -> None:
        with self._lock:
            self._children.add(child)
            cancelled = self._event.is_set()
        if cancelled:
            child.cancel()

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Seconds left until the deadline, ``None`` when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        for child in children:
            child.cancel()

    def error(self) -> Exception | None:
        """The error describing why the context is done, if it is."""
        if self.cancelled:
            return ContextCancelledError()
        if self.expired:
            return DeadlineExceededError()
        return None

    def raise_if_done(self) -> None:
        err = self.error()
        if err is not None:
            raise err

    def _on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._discard(callback)
        callback()
        return lambda: None

    def _discard(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def sleep(self, delay: float) -> bool:
        """Block for ``delay`` seconds or until the context is done.

        Returns True if the full delay elapsed, False if the sleep was cut
        short by cancellation or the deadline.
        """
        remaining = self.remaining()
        if remaining is not None and remaining < delay:
            self._event.wait(remaining)
            return False
        return not self._event.wait(max(0.0, delay))

    async def async_sleep(self, delay: float) -> bool:
        """Asyncio variant of ``sleep``; cancellation may come from any thread."""
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        unregister = self._on_cancel(lambda: loop.call_soon_threadsafe(event.set))
        remaining = self.remaining()
        budget = delay if remaining is None else min(delay, remaining)
        try:
            await asyncio.wait_for(event.wait(), timeout=max(0.0, budget))
        except asyncio.TimeoutError:
            return remaining is None or remaining >= delay
        finally:
            unregister()
        return False

    async def async_cancelled(self) -> None:
        """Resolve once the context is cancelled (not on deadline)."""
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        unregister = self._on_cancel(lambda: loop.call_soon_threadsafe(event.set))
        try:
            await event.wait()
        finally:
            unregister()

    def __repr__(self) -> str:
        remaining: Optional[float] = self.remaining()
        state = "cancelled" if self.cancelled else ("expired" if self.expired else "active")
        return f"Context({state}, remaining={remaining})"
