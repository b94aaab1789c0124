"""Tests for the fetch-with-retry client."""

import asyncio

import httpx
import pytest

from air_quality_monitor import config, fetcher
from air_quality_monitor.errors import (
    FetchTimeoutError,
    HttpStatusError,
    MalformedResponseError,
    NetworkError,
)

from conftest import DummyTransport, json_response, make_client

URL = "http://example.test/v1/measurements"


@pytest.mark.asyncio
async def test_fetch_success_sends_accept_header(sleeps) -> None:
    transport = DummyTransport(json_response({"measurements": [1, 2], "city": "Quito"}))
    async with make_client(transport) as client:
        data = await fetcher.fetch_with_retry(URL, client=client)

    assert data == {"measurements": [1, 2], "city": "Quito"}
    assert len(transport.requests) == 1
    request = transport.requests[0]
    assert request.method == "GET"
    assert str(request.url) == URL
    assert request.headers["Accept"] == "application/json"
    assert sleeps == []


@pytest.mark.asyncio
@pytest.mark.parametrize("failures", [0, 1, 2])
async def test_transient_failures_then_success(sleeps, failures: int) -> None:
    responses = [json_response({}, status=503) for _ in range(failures)]
    responses.append(json_response({"measurements": [failures]}))
    transport = DummyTransport(*responses)

    async with make_client(transport) as client:
        data = await fetcher.fetch_with_retry(
            URL, client=client, max_retries=2, initial_delay_ms=1000
        )

    assert data == {"measurements": [failures]}
    assert len(transport.requests) == failures + 1
    assert sleeps == [1.0, 2.0][:failures]
    assert sum(sleeps) == sum([1.0, 2.0][:failures])


@pytest.mark.asyncio
async def test_retries_exhausted_after_three_attempts(sleeps) -> None:
    transport = DummyTransport(
        *[httpx.Response(500, text="boom") for _ in range(3)]
    )
    async with make_client(transport) as client:
        with pytest.raises(HttpStatusError, match="HTTP error: 500 Internal Server Error"):
            await fetcher.fetch_with_retry(
                URL, client=client, max_retries=2, initial_delay_ms=1000
            )

    assert len(transport.requests) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_backoff_doubles_each_retry(sleeps) -> None:
    transport = DummyTransport(*[httpx.Response(502) for _ in range(5)])
    async with make_client(transport) as client:
        with pytest.raises(HttpStatusError) as exc_info:
            await fetcher.fetch_with_retry(
                URL, client=client, max_retries=4, initial_delay_ms=250
            )

    assert exc_info.value.status_code == 502
    assert sleeps == [0.25, 0.5, 1.0, 2.0]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"measurements": "not-a-list"},
        {"results": [1, 2]},
        [1, 2, 3],
        {"measurements": None},
    ],
)
async def test_malformed_body_is_failure(sleeps, body) -> None:
    transport = DummyTransport(json_response(body))
    async with make_client(transport) as client:
        with pytest.raises(MalformedResponseError, match="measurements"):
            await fetcher.fetch_with_retry(URL, client=client, max_retries=0)


@pytest.mark.asyncio
async def test_invalid_json_is_malformed(sleeps) -> None:
    transport = DummyTransport(httpx.Response(200, text="<html>oops</html>"))
    async with make_client(transport) as client:
        with pytest.raises(MalformedResponseError):
            await fetcher.fetch_with_retry(URL, client=client, max_retries=0)


@pytest.mark.asyncio
async def test_malformed_response_is_retried(sleeps) -> None:
    transport = DummyTransport(
        json_response({"measurements": {}}),
        json_response({"measurements": ["ok"]}),
    )
    async with make_client(transport) as client:
        data = await fetcher.fetch_with_retry(URL, client=client, max_retries=2)

    assert data == {"measurements": ["ok"]}
    assert len(sleeps) == 1


@pytest.mark.asyncio
async def test_timeout_cancels_attempt(sleeps) -> None:
    calls = 0

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        await asyncio.sleep(5)
        return json_response({"measurements": ["late"]})

    async with make_client(slow_handler) as client:
        with pytest.raises(FetchTimeoutError, match="Timed out"):
            await fetcher.fetch_with_retry(
                URL, client=client, max_retries=1, timeout_ms=20
            )

    assert calls == 2
    assert sleeps == [config.DEFAULT_INITIAL_DELAY_MS / 1000.0]


@pytest.mark.asyncio
async def test_timeout_then_success(sleeps) -> None:
    attempts = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            await asyncio.sleep(5)
            return json_response({"measurements": ["late"]})
        return json_response({"measurements": ["fresh"]})

    async with make_client(handler) as client:
        data = await fetcher.fetch_with_retry(URL, client=client, timeout_ms=20)

    assert data == {"measurements": ["fresh"]}
    assert attempts == 2


@pytest.mark.asyncio
async def test_network_error_is_retried_then_raised(sleeps) -> None:
    transport = DummyTransport(
        httpx.ConnectError("refused"),
        httpx.ConnectError("refused"),
    )
    async with make_client(transport) as client:
        with pytest.raises(NetworkError, match="refused"):
            await fetcher.fetch_with_retry(URL, client=client, max_retries=1)

    assert len(transport.requests) == 2


@pytest.mark.asyncio
async def test_defaults_come_from_config(monkeypatch, sleeps) -> None:
    monkeypatch.setattr(config, "API_URL", "http://configured.test/data")
    monkeypatch.setattr(config, "MAX_RETRIES", 0)
    transport = DummyTransport(httpx.Response(404))

    async with make_client(transport) as client:
        with pytest.raises(HttpStatusError, match="404 Not Found"):
            await fetcher.fetch_with_retry(client=client)

    assert str(transport.requests[0].url) == "http://configured.test/data"
    assert sleeps == []


@pytest.mark.asyncio
async def test_undecodable_body_is_retried(sleeps) -> None:
    transport = DummyTransport(
        httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip"),
        json_response({"measurements": [1]}),
    )
    async with make_client(transport) as client:
        data = await fetcher.fetch_with_retry(URL, client=client, max_retries=2)

    assert data == {"measurements": [1]}
    assert len(transport.requests) == 2
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_undecodable_body_terminal_is_network_error(sleeps) -> None:
    transport = DummyTransport(
        httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"junk"),
    )
    async with make_client(transport) as client:
        with pytest.raises(NetworkError):
            await fetcher.fetch_with_retry(URL, client=client, max_retries=0)
