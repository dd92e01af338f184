"""Tracker error hierarchy.

Every non-success outcome of a dispatched request is surfaced as one of
these, with a message meant to be shown to the user verbatim. Transport
failures are not wrapped: the underlying httpx exception propagates as is.
"""

from typing import Optional


class TrackerError(Exception):
    """Base exception for all classified tracker errors."""

    default_message = "Jira API Error"

    def __init__(self, message: Optional[str] = None, status: int = 0,
                 account: Optional[str] = None):
        self.status = status
        self.account = account
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(TrackerError):
    default_message = "Bad Request: The query is not valid"


class UnauthorizedError(TrackerError):
    default_message = "Unauthorized: Please check your authentication credentials"


class ForbiddenError(TrackerError):
    default_message = ("Forbidden: You don't have permission to access this resource. "
                       "Check your API token permissions and Jira project access.")


class NotFoundError(TrackerError):
    default_message = "Not Found: Issue does not exist"


class MissingApiError(TrackerError):
    default_message = "Missing API: Activate the 2025 search api in the Jira Issue account settings"


class RateLimitedError(TrackerError):
    default_message = "Too Many Requests: Rate limit exceeded (should have been retried)"


class TrackerApiError(TrackerError):
    """Any other status, or a server-provided errorMessages list."""


class NoAccountConfiguredError(TrackerError):
    default_message = "No Jira account configured"


class UnknownAccountError(TrackerError):
    """An account alias that is not configured."""

    def __init__(self, alias: str):
        super().__init__(f"Account not found: {alias}", status=404, account=alias)


class CachedTrackerError(TrackerError):
    """Replay of an error stored in the result cache."""


STATUS_ERRORS = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    410: MissingApiError,
    429: RateLimitedError,
}
