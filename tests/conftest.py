"""Shared fixtures for the issue bridge test suite."""

import asyncio
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from issue_bridge.core.cache import ResultCache
from issue_bridge.models.account import Account, AuthenticationType, RateLimitSettings
from issue_bridge.models.request import PhysicalRequest, TransportResponse
from issue_bridge.services.jira.client import JiraClient
from issue_bridge.services.jira.dispatcher import MultiAccountDispatcher
from issue_bridge.services.jira.orchestrator import IssueOrchestrator
from issue_bridge.services.jira.queue import QueueRegistry
from issue_bridge.services.jira.transport import HttpxExchange, RetryingTransport


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is awaited."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class ScriptedExchange:
    """Exchange that answers from a per-URL-prefix script instead of the network.

    Each prefix maps to a list of responses consumed in order; the last one is
    repeated once the list runs out.
    """

    def __init__(self, script: Dict[str, List[TransportResponse]]):
        self.script = script
        self.requests: List[PhysicalRequest] = []

    async def __call__(self, request: PhysicalRequest) -> TransportResponse:
        self.requests.append(request)
        for host, responses in self.script.items():
            if request.url.startswith(host):
                return responses.pop(0) if len(responses) > 1 else responses[0]
        return TransportResponse(status=0, error=httpx.ConnectError(request.url))

    def urls(self) -> List[str]:
        return [r.url for r in self.requests]


def json_response(status: int, body=None, headers: Optional[Dict[str, str]] = None) -> TransportResponse:
    return TransportResponse(
        status=status,
        headers={"content-type": "application/json", **(headers or {})},
        json_body=body,
    )


def make_account(alias: str = "A", priority: int = 1, host: Optional[str] = None,
                 throttled: bool = False, **kwargs) -> Account:
    return Account(
        alias=alias,
        host=host or f"https://{alias.lower()}.example.test",
        priority=priority,
        rate_limit=RateLimitSettings(enabled=throttled, delay_ms=0),
        **kwargs,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def account_a() -> Account:
    return make_account("A", priority=1)


@pytest.fixture
def account_b() -> Account:
    return make_account("B", priority=2,
                        authentication_type=AuthenticationType.BEARER_TOKEN,
                        bare_token="token-b")


@pytest.fixture
def build_stack(clock) -> Callable[..., IssueOrchestrator]:
    """Factory wiring the full stack over a given exchange."""

    def _build(accounts: List[Account], exchange=None,
               cache: Optional[ResultCache] = None) -> IssueOrchestrator:
        registry = QueueRegistry(clock=clock, sleep=clock.sleep)
        transport = RetryingTransport(exchange or HttpxExchange(), sleep=clock.sleep)
        dispatcher = MultiAccountDispatcher(accounts, registry, transport)
        client = JiraClient(dispatcher)
        return IssueOrchestrator(client, cache or ResultCache(), registry)

    return _build
