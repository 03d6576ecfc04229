from __future__ import annotations

from dataclasses import dataclass, field

from .errors import SDKError

DEFAULT_RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 502, 503, 504})

# Methods retried without the caller flagging the request as safe.
SAFE_METHODS: frozenset[str] = frozenset({"GET", "HEAD"})


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff window for safe requests.

    Attributes:
        max_attempts: Total attempts for one call, the first included
        base_delay: Delay in seconds before the second attempt
        max_delay: Upper bound of any single delay
        jitter: Fraction of the computed delay that is randomized (0..1)
        retryable_statuses: HTTP statuses eligible for retry
        retry_transport_errors: Whether status-0 transport failures are retried
        respect_retry_after: Use a 429's Retry-After as the delay floor
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 5.0
    jitter: float = 0.25
    retryable_statuses: frozenset[int] = field(default=DEFAULT_RETRYABLE_STATUSES)
    retry_transport_errors: bool = True
    respect_retry_after: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be within [0, 1]")
        if not isinstance(self.retryable_statuses, frozenset):
            object.__setattr__(self, "retryable_statuses", frozenset(self.retryable_statuses))

    def allows(self, err: SDKError) -> bool:
        """Whether the policy lets this classified error be retried."""
        if not err.retryable:
            return False
        if err.status_code == 0:
            return self.retry_transport_errors
        return err.status_code in self.retryable_statuses


@dataclass(frozen=True)
class Attempt:
    number: int
    elapsed: float
    error: SDKError | None = None


def is_safe(method: str, safe: bool | None = None) -> bool:
    if safe is not None:
        return safe
    return method.upper() in SAFE_METHODS
