"""Exponential backoff with jitter between retry attempts.

Delay for attempt ``n`` (1-indexed) is ``base * 2 ** (n - 1)`` clamped to
``max_delay``, then drawn uniformly from ``[d * (1 - jitter), d]`` so that
concurrent clients retrying the same failure spread out instead of
retrying in lockstep. Drawing below the computed window keeps every delay
under the configured cap.
"""

from __future__ import annotations

import random
from typing import Callable

from .policy import RetryPolicy


class Backoff:
    def __init__(
        self,
        base: float = 0.1,
        max_delay: float = 5.0,
        jitter: float = 0.25,
        *,
        rand: Callable[[float, float], float] = random.uniform,
    ) -> None:
        if base < 0 or max_delay < base:
            raise ValueError("backoff requires 0 <= base <= max_delay")
        if not 0.0 <= jitter <= 1.0:
            raise ValueError("jitter must be within [0, 1]")
        self.base = base
        self.max_delay = max_delay
        self.jitter = jitter
        self._rand = rand

    @classmethod
    def from_policy(cls, policy: RetryPolicy) -> Backoff:
        return cls(policy.base_delay, policy.max_delay, policy.jitter)

    def window(self, attempt: int) -> float:
        """Un-jittered delay for ``attempt``, already clamped."""
        attempt = max(1, attempt)
        # cap the exponent before it overflows a float
        exponent = min(attempt - 1, 64)
        return min(self.base * (2.0 ** exponent), self.max_delay)

    def next_delay(self, attempt: int) -> float:
        d = self.window(attempt)
        if d <= 0 or self.jitter == 0:
            return d
        delay = self._rand(d * (1.0 - self.jitter), d)
        # full jitter may draw the lower bound exactly
        return delay if delay > 0 else d

    def __repr__(self) -> str:
        return f"Backoff(base={self.base}, max_delay={self.max_delay}, jitter={self.jitter})"
