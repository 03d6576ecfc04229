"""
cloudsdk – Python SDK core for the cloud infrastructure API

Public surface:
- Clients: Client, AsyncClient (one executor + one waiter each)
- Execution: RequestExecutor, AsyncRequestExecutor, Request, RawResponse
- Retry: RetryPolicy, Backoff, ErrorClassifier
- Polling: Waiter, AsyncWaiter, WaitSpec, ProbeResult, WaitState, and the
  resource helpers in ``cloudsdk.waiters``
- Cancellation: Context
- Config: configure, config (context manager), settings

Resource clients (paths, bodies, models) build on ``do`` and ``wait``.
"""

import logging

__version__ = "0.1.0"

from .config import Settings, configure, config, settings
from .context import Context
from .policy import Attempt, RetryPolicy
from .backoff import Backoff
from .classify import ErrorClassifier
from .transport import RawResponse, Request
from .executor import AsyncRequestExecutor, RequestExecutor
from .waiter import AsyncWaiter, ProbeResult, WaitSpec, WaitState, Waiter
from .client import AsyncClient, Client
from . import waiters
from .errors import (
    SDKError,
    TransportError,
    BadRequestError,
    ValidationError,
    AuthError,
    NotFoundError,
    ConflictError,
    RateLimitedError,
    ServerError,
    RetriesExhaustedError,
    CancellationError,
    ContextCancelledError,
    DeadlineExceededError,
    WaitError,
    WaitFailedError,
    WaitTimedOutError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Config
    "Settings",
    "configure",
    "config",
    "settings",
    # Clients
    "Client",
    "AsyncClient",
    # Execution
    "Context",
    "Request",
    "RawResponse",
    "RequestExecutor",
    "AsyncRequestExecutor",
    "RetryPolicy",
    "Attempt",
    "Backoff",
    "ErrorClassifier",
    # Polling
    "Waiter",
    "AsyncWaiter",
    "WaitSpec",
    "WaitState",
    "ProbeResult",
    "waiters",
    # Errors
    "SDKError",
    "TransportError",
    "BadRequestError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "ConflictError",
    "RateLimitedError",
    "ServerError",
    "RetriesExhaustedError",
    "CancellationError",
    "ContextCancelledError",
    "DeadlineExceededError",
    "WaitError",
    "WaitFailedError",
    "WaitTimedOutError",
    "__version__",
]
