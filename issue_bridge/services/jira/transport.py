"""Physical HTTP exchange and the retry-on-throttle wrapper around it.

Usage:
    exchange = HttpxExchange(timeout=30.0)
    transport = RetryingTransport(exchange)
    response = await transport.send(PhysicalRequest("GET", url, headers))

The transport knows nothing about accounts or queues; it only repeats one
exchange while the server answers 429 and retries remain.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import httpx

from issue_bridge.constants import MAX_RETRIES
from issue_bridge.core.logging import get_logger
from issue_bridge.models.request import PhysicalRequest, TransportResponse
from issue_bridge.services.jira.backoff import (
    DEFAULT_BASE_MS,
    DEFAULT_CAP_MS,
    compute_delay,
    parse_retry_after_header,
)

logger = get_logger(__name__)

Exchange = Callable[[PhysicalRequest], Awaitable[TransportResponse]]

_TEXTUAL_TYPES = ("text", "json", "xml")


def to_transport_response(response: httpx.Response) -> TransportResponse:
    """Flatten an httpx response into a TransportResponse."""
    headers = {k.lower(): v for k, v in response.headers.items()}
    content_type = headers.get("content-type", "")

    json_body = None
    if "json" in content_type and response.content:
        try:
            json_body = response.json()
        except ValueError:
            json_body = None

    text_body = None
    if any(t in content_type for t in _TEXTUAL_TYPES):
        text_body = response.text

    return TransportResponse(
        status=response.status_code,
        headers=headers,
        json_body=json_body,
        text_body=text_body,
        binary_body=response.content,
    )


class HttpxExchange:
    """Performs one physical call with a shared httpx.AsyncClient.

    Network failures are returned as a response with status 0 carrying the
    exception, never raised.
    """

    def __init__(self, timeout: float = 30.0,
                 client: Optional[httpx.AsyncClient] = None,
                 log_requests_responses: bool = False):
        self.timeout = timeout
        self.log_requests_responses = log_requests_responses
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def __call__(self, request: PhysicalRequest) -> TransportResponse:
        client = self._get_client()
        try:
            response = await client.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.body,
            )
        except httpx.HTTPError as e:
            logger.warning("Request failed without response",
                           method=request.method,
                           url=request.url,
                           error=str(e))
            return TransportResponse(status=0, error=e)

        result = to_transport_response(response)
        if self.log_requests_responses:
            logger.info("Tracker fetch",
                        method=request.method,
                        url=request.url,
                        status=result.status,
                        content_type=result.content_type)
        return result

    async def aclose(self) -> None:
        """Close the shared client (call on shutdown)."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class RetryingTransport:
    """Repeats an exchange on HTTP 429 up to ``max_retries`` times.

    The wait prefers the response's Retry-After header and falls back to the
    exponential schedule. Every other outcome, including the last 429 once
    retries are exhausted, is returned unchanged for the caller to classify.
    """

    def __init__(self, exchange: Exchange, max_retries: int = MAX_RETRIES,
                 backoff_base_ms: int = DEFAULT_BASE_MS,
                 backoff_cap_ms: int = DEFAULT_CAP_MS,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self._exchange = exchange
        self.max_retries = max_retries
        self.backoff_base_ms = backoff_base_ms
        self.backoff_cap_ms = backoff_cap_ms
        self._sleep = sleep

    def wait_ms(self, response: TransportResponse, attempt: int) -> int:
        """Milliseconds to wait before retrying ``attempt``."""
        retry_after = parse_retry_after_header(response.headers.get("retry-after"))
        if retry_after is not None:
            return retry_after
        return compute_delay(attempt, self.backoff_base_ms, self.backoff_cap_ms)

    async def send(self, request: PhysicalRequest) -> TransportResponse:
        attempt = 0
        while True:
            response = await self._exchange(request)
            if response.status != 429:
                return response

            if attempt >= self.max_retries:
                logger.error("Max retries exceeded for 429 error",
                             url=request.url,
                             max_retries=self.max_retries)
                return response

            wait = self.wait_ms(response, attempt)
            logger.warning("Rate limited (429), retrying",
                           url=request.url,
                           wait_ms=wait,
                           attempt=attempt + 1,
                           max_retries=self.max_retries)
            await self._sleep(wait / 1000)
            attempt += 1
