"""Multi-account request dispatch.

Binds a LogicalRequest to an account, pushes it through that account's queue
and the retrying transport, and decides whether to fall through to the next
account. Each response is first reduced to a tagged result
(Success / Retryable4xx / Fatal) so the loop's continue/stop decision is a
pure function of that tag.

Fallback policy, when the request names no account:
- 200 with a JSON body, or 204: success, stop.
- 4xx other than 429: this account cannot serve the resource, try the next.
- Anything else (5xx, a 429 that outlived its retries, no response): stop.

A 4xx on the last account is treated exactly like one on an intermediate
account: the loop ends and that response becomes the error. A 5xx aborts
the fallback even when later accounts could have answered.
"""

import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlencode

from issue_bridge.constants import (
    ATLASSIAN_TOKEN_HEADER,
    ATLASSIAN_TOKEN_VALUE,
    DEFAULT_API_BASE_PATH,
    USER_AGENT,
)
from issue_bridge.core.logging import get_logger, log_api_call
from issue_bridge.models.account import Account, AuthenticationType, sort_by_priority
from issue_bridge.models.request import LogicalRequest, PhysicalRequest, TransportResponse
from issue_bridge.services.jira.exceptions import (
    STATUS_ERRORS,
    NoAccountConfiguredError,
    TrackerApiError,
)
from issue_bridge.services.jira.queue import QueueRegistry
from issue_bridge.services.jira.transport import RetryingTransport

logger = get_logger(__name__)


# ============================================================================
# Tagged dispatch results
# ============================================================================

@dataclass
class TrackerResult:
    """Successful outcome, tagged with the account that served it."""
    data: Any
    account: Account


@dataclass
class Retryable4xx:
    response: TransportResponse
    account: Account


@dataclass
class Fatal:
    response: TransportResponse
    account: Account


DispatchResult = Union[TrackerResult, Retryable4xx, Fatal]


def classify_response(response: TransportResponse, account: Account) -> DispatchResult:
    """Reduce one account's response to a tagged result."""
    if response.status == 204:
        return TrackerResult(data=None, account=account)
    if response.status == 200 and response.is_json:
        return TrackerResult(data=response.json_body, account=account)
    if 400 <= response.status < 500 and response.status != 429:
        return Retryable4xx(response=response, account=account)
    return Fatal(response=response, account=account)


def should_try_next_account(result: DispatchResult) -> bool:
    return isinstance(result, Retryable4xx)


# ============================================================================
# Error classification
# ============================================================================

def error_from_response(response: TransportResponse,
                        account: Optional[Account] = None) -> BaseException:
    """Build the exception the caller sees for a failed response.

    A transport failure yields the original transport exception.
    """
    alias = account.alias if account else None

    if response.is_transport_error:
        return response.error or TrackerApiError("Request failed without response", account=alias)

    status = response.status
    error_cls = STATUS_ERRORS.get(status, TrackerApiError)

    if response.is_json and isinstance(response.json_body, dict):
        messages = response.json_body.get("errorMessages")
        if messages:
            return error_cls("\n".join(str(m) for m in messages), status=status, account=alias)

    if status in STATUS_ERRORS:
        return error_cls(status=status, account=alias)

    if response.is_json and isinstance(response.json_body, dict) and response.json_body.get("message"):
        detail = response.json_body["message"]
    elif response.is_text and "<title>Log in" in response.text_body:
        detail = "Login required"
    else:
        detail = f"HTTP {status}"
    return TrackerApiError(f"Jira API {status} Error: {detail}", status=status, account=alias)


# ============================================================================
# Physical request construction
# ============================================================================

def build_url(host: str, request: LogicalRequest, use_2025_api: bool = False,
              api_base_path: str = DEFAULT_API_BASE_PATH) -> str:
    """Join host, API base path and resource path without doubled slashes.

    The alternate path and query are used when the account opted into the
    2025 API and the request provides them. Empty query values are dropped.
    """
    base_path = "" if request.no_base_path else (api_base_path or "")
    host = host.rstrip("/")
    base_path = "/" + base_path.strip("/") if base_path.strip("/") else ""

    path = request.path_2025 if (use_2025_api and request.path_2025) else request.path
    path = path if path.startswith("/") else "/" + path

    url = f"{host}{base_path}{path}"

    params = request.query_params_2025 if (use_2025_api and request.query_params_2025 is not None) \
        else request.query_params
    params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


def build_headers(account: Account) -> Dict[str, str]:
    """Fixed product headers plus the account's Authorization header."""
    headers = {
        "User-Agent": USER_AGENT,
        ATLASSIAN_TOKEN_HEADER: ATLASSIAN_TOKEN_VALUE,
        "Accept": "application/json",
    }
    if account.authentication_type in (AuthenticationType.BASIC, AuthenticationType.CLOUD):
        credentials = f"{account.username or ''}:{account.password or ''}"
        headers["Authorization"] = "Basic " + base64.b64encode(credentials.encode()).decode()
    elif account.authentication_type == AuthenticationType.BEARER_TOKEN:
        headers["Authorization"] = f"Bearer {account.bare_token or ''}"
    return headers


# ============================================================================
# Dispatcher
# ============================================================================

class MultiAccountDispatcher:
    """Routes logical requests to accounts in priority order."""

    def __init__(self, accounts: List[Account], registry: QueueRegistry,
                 transport: RetryingTransport,
                 api_base_path: str = DEFAULT_API_BASE_PATH):
        self.accounts = accounts
        self.registry = registry
        self.transport = transport
        self.api_base_path = api_base_path

    def to_physical(self, account: Account, request: LogicalRequest) -> PhysicalRequest:
        headers = build_headers(account)
        if request.body is not None:
            headers["Content-Type"] = "application/json"
        return PhysicalRequest(
            method=request.method,
            url=build_url(account.host, request, account.use_2025_api, self.api_base_path),
            headers=headers,
            body=request.body,
        )

    async def send_physical(self, account: Account, physical: PhysicalRequest) -> TransportResponse:
        """Run one physical request through the account's queue and the
        retrying transport."""
        response = await self.registry.submit(account, lambda: self.transport.send(physical))
        log_api_call(logger, account.alias, physical.method, physical.url, response.status)
        return response

    async def send_with_account(self, account: Account, request: LogicalRequest) -> TransportResponse:
        return await self.send_physical(account, self.to_physical(account, request))

    async def dispatch(self, request: LogicalRequest) -> TrackerResult:
        """Execute a logical request and return the tagged success.

        Raises:
            TrackerError: classified error of the last response
            httpx.HTTPError: when the last attempt got no response at all
        """
        if request.account is not None:
            response = await self.send_with_account(request.account, request)
            result = classify_response(response, request.account)
            if isinstance(result, TrackerResult):
                return result
            raise error_from_response(response, request.account)

        accounts = sort_by_priority(self.accounts)
        if not accounts:
            raise NoAccountConfiguredError()

        last: Optional[DispatchResult] = None
        for account in accounts:
            response = await self.send_with_account(account, request)
            last = classify_response(response, account)
            if isinstance(last, TrackerResult):
                return last
            if not should_try_next_account(last):
                break
            logger.debug("Account cannot serve request, trying next",
                         account=account.alias,
                         status=response.status)

        raise error_from_response(last.response, last.account)
