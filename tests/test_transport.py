"""Tests for the physical exchange and 429 retry loop."""

import httpx
import pytest
import respx

from conftest import ScriptedExchange, json_response
from issue_bridge.constants import MAX_RETRIES
from issue_bridge.models.request import PhysicalRequest, TransportResponse
from issue_bridge.services.jira.transport import HttpxExchange, RetryingTransport

URL = "https://a.example.test/rest/api/latest/myself"


def _request() -> PhysicalRequest:
    return PhysicalRequest("GET", URL, {"Accept": "application/json"})


@pytest.mark.asyncio
async def test_single_429_is_retried_once(clock) -> None:
    exchange = ScriptedExchange({URL: [json_response(429), json_response(200, {"ok": True})]})
    transport = RetryingTransport(exchange, sleep=clock.sleep)

    response = await transport.send(_request())

    assert response.status == 200
    assert response.json_body == {"ok": True}
    assert len(exchange.requests) == 2
    assert clock.sleeps == [1.0]


@pytest.mark.asyncio
async def test_retry_after_header_is_preferred(clock) -> None:
    exchange = ScriptedExchange({URL: [
        json_response(429, headers={"retry-after": "3"}),
        json_response(200, {}),
    ]})
    transport = RetryingTransport(exchange, sleep=clock.sleep)

    await transport.send(_request())

    assert clock.sleeps == [3.0]


@pytest.mark.asyncio
async def test_exhausted_retries_return_last_429(clock) -> None:
    exchange = ScriptedExchange({URL: [json_response(429)]})
    transport = RetryingTransport(exchange, sleep=clock.sleep)

    response = await transport.send(_request())

    assert response.status == 429
    assert len(exchange.requests) == MAX_RETRIES + 1
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 16.0]


@pytest.mark.asyncio
async def test_other_statuses_are_not_retried(clock) -> None:
    exchange = ScriptedExchange({URL: [json_response(500, {"message": "down"})]})
    transport = RetryingTransport(exchange, sleep=clock.sleep)

    response = await transport.send(_request())

    assert response.status == 500
    assert len(exchange.requests) == 1
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_transport_failure_is_not_retried(clock) -> None:
    exchange = ScriptedExchange({})
    transport = RetryingTransport(exchange, sleep=clock.sleep)

    response = await transport.send(_request())

    assert response.is_transport_error
    assert len(exchange.requests) == 1


@pytest.mark.asyncio
async def test_zero_max_retries_returns_first_429(clock) -> None:
    exchange = ScriptedExchange({URL: [json_response(429)]})
    transport = RetryingTransport(exchange, max_retries=0, sleep=clock.sleep)

    response = await transport.send(_request())

    assert response.status == 429
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_httpx_exchange_parses_json() -> None:
    with respx.mock(assert_all_called=True) as router:
        route = router.get(URL).respond(200, json={"name": "jdoe"})

        exchange = HttpxExchange()
        response = await exchange(_request())
        await exchange.aclose()

    assert response.status == 200
    assert response.is_json
    assert response.json_body == {"name": "jdoe"}
    assert route.calls[0].request.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_httpx_exchange_keeps_text_and_binary() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.get(URL).respond(503, text="<html><title>Log in</title></html>",
                                headers={"Content-Type": "text/html"})

        exchange = HttpxExchange()
        response = await exchange(_request())
        await exchange.aclose()

    assert response.status == 503
    assert not response.is_json
    assert response.is_text
    assert "<title>Log in" in response.text_body
    assert response.binary_body.startswith(b"<html>")


@pytest.mark.asyncio
async def test_httpx_exchange_connection_error_gives_status_zero() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.get(URL).mock(side_effect=httpx.ConnectError("refused"))

        exchange = HttpxExchange()
        response = await exchange(_request())
        await exchange.aclose()

    assert isinstance(response, TransportResponse)
    assert response.status == 0
    assert isinstance(response.error, httpx.ConnectError)
