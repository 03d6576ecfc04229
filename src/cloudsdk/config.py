from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any

from .policy import RetryPolicy


@dataclass
class Settings:
    """SDK configuration with environment overlay.

    A client snapshots these at construction; nothing reads the global
    defaults afterwards, so two clients may run with different policies.
    """

    base_url: str | None = None
    token: str | None = field(default=None, repr=False)  # never logged

    timeout: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    logger: logging.Logger | None = None

    user_agent: str = "cloudsdk-python"
    verify: bool = True
    pool_maxsize: int = 10

    # waiter defaults when a WaitSpec leaves them unset
    wait_interval: float = 2.0
    wait_max: float = 300.0

    max_error_body: int = 512

    def get_logger(self, name: str) -> logging.Logger:
        if self.logger is not None:
            return self.logger
        return logging.getLogger(name)


_global_settings = Settings()
_stack: list[Settings] = []


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _from_env(s: Settings) -> Settings:
    retry = s.retry
    max_attempts = _env_int("CLOUDSDK_MAX_ATTEMPTS", retry.max_attempts)
    if max_attempts != retry.max_attempts:
        retry = replace(retry, max_attempts=max_attempts)
    return replace(
        s,
        base_url=os.getenv("CLOUDSDK_BASE_URL", s.base_url),
        token=os.getenv("CLOUDSDK_TOKEN", s.token),
        timeout=_env_float("CLOUDSDK_TIMEOUT", s.timeout),
        retry=retry,
    )


def configure(**kwargs: Any) -> None:
    """Configure global SDK defaults.

    Example:
        configure(base_url="https://api.example.com", timeout=10)
    """
    global _global_settings
    for k, v in kwargs.items():
        if not hasattr(_global_settings, k):
            raise AttributeError(f"Unknown setting: {k}")
        setattr(_global_settings, k, v)


@contextmanager
def config(**kwargs: Any):
    """Temporarily apply settings within a context."""
    global _global_settings
    _stack.append(replace(_global_settings))
    try:
        configure(**kwargs)
        yield
    finally:
        _global_settings = _stack.pop()


def settings() -> Settings:
    """Return the effective merged settings (env overlaid on current)."""
    return _from_env(_global_settings)
