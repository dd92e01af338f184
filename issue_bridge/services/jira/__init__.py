"""Request orchestration for the issue tracker REST API.

Leaf to root:
- backoff: retry wait computation
- queue: per-account FIFO with concurrency and spacing limits
- transport: physical exchange with retry on 429
- dispatcher: account selection and error classification
- client / orchestrator: REST operations and the cache-aware facade
"""

from .backoff import compute_delay, parse_retry_after_header
from .client import JiraClient
from .dispatcher import MultiAccountDispatcher, TrackerResult
from .exceptions import (
    TrackerError,
    BadRequestError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    MissingApiError,
    RateLimitedError,
    TrackerApiError,
    NoAccountConfiguredError,
    UnknownAccountError,
    CachedTrackerError,
)
from .orchestrator import IssueOrchestrator
from .queue import AccountQueue, QueueRegistry
from .transport import HttpxExchange, RetryingTransport

__all__ = [
    # Backoff
    "compute_delay",
    "parse_retry_after_header",
    # Queue
    "AccountQueue",
    "QueueRegistry",
    # Transport
    "HttpxExchange",
    "RetryingTransport",
    # Dispatch
    "MultiAccountDispatcher",
    "TrackerResult",
    # Client
    "JiraClient",
    "IssueOrchestrator",
    # Errors
    "TrackerError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "MissingApiError",
    "RateLimitedError",
    "TrackerApiError",
    "NoAccountConfiguredError",
    "UnknownAccountError",
    "CachedTrackerError",
]
