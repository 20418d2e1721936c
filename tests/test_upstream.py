import asyncio
import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from covid_watch.modules.metrics import daily_delta
from covid_watch.modules.upstream import Status, UpstreamClient, is_transient

BASE_URL = "http://upstream.test/v1/"

HISTORY = {
    "All": {
        "country": "France",
        "population": 64979548,
        "sq_km_area": 551500,
        "dates": {
            "2021-01-03": 64921,
            "2021-01-02": 64892,
            "2021-01-01": 64759,
        },
    }
}


def response_with(data) -> MagicMock:
    response = MagicMock()
    response.__aenter__.return_value.json = AsyncMock(return_value=data)
    return response


def response_error(status: int) -> aiohttp.ClientResponseError:
    return aiohttp.ClientResponseError(
        request_info=MagicMock(), history=(), status=status
    )


def client_for(session: aiohttp.ClientSession, attempts: int = 3) -> UpstreamClient:
    return UpstreamClient(session, base_url=BASE_URL, attempts=attempts, backoff=0)


def test_is_transient() -> None:
    assert is_transient(aiohttp.ClientConnectionError())
    assert is_transient(asyncio.TimeoutError())
    assert is_transient(response_error(503))
    assert not is_transient(response_error(404))
    assert not is_transient(ValueError())


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_success(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(
        side_effect=[HISTORY]
    )

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("France", Status.DEATHS)

    mock_get.assert_called_once_with(
        BASE_URL + "history/", params={"country": "France", "status": "deaths"}
    )
    assert series.to_list() == [64759, 64892, 64921]
    assert daily_delta(series, date(2021, 1, 3)) == 29


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_confirmed_status(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(
        side_effect=[HISTORY]
    )

    async with aiohttp.ClientSession() as session:
        await client_for(session).fetch_series("France", Status.CONFIRMED)

    assert mock_get.call_args.kwargs["params"]["status"] == "confirmed"


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_unknown_country(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(side_effect=[{}])

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("Atlantis", Status.DEATHS)

    assert series.empty


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_invalid_json(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(
        side_effect=json.JSONDecodeError("Expecting value", "<html>", 0)
    )

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("France", Status.DEATHS)

    assert series.empty
    assert mock_get.call_count == 1


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_invalid_counts(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(
        side_effect=[{"All": {"dates": {"2021-01-01": "many"}}}]
    )

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("France", Status.DEATHS)

    assert series.empty


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_counts_beyond_int64(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(
        side_effect=[{"All": {"dates": {"2021-01-01": 2**70, "2021-01-02": 2**70 + 5}}}]
    )

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("France", Status.DEATHS)

    assert series.empty
    assert mock_get.call_count == 1


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_largest_int64_count(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(
        side_effect=[{"All": {"dates": {"2021-01-01": 0, "2021-01-02": 2**63 - 1}}}]
    )

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("France", Status.DEATHS)

    assert series.to_list() == [0, 2**63 - 1]


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_retries_connection_errors(mock_get) -> None:
    mock_get.side_effect = [
        aiohttp.ClientConnectionError("connection reset"),
        asyncio.TimeoutError(),
        response_with(HISTORY),
    ]

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("France", Status.DEATHS)

    assert mock_get.call_count == 3
    assert len(series) == 3


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_gives_up_after_attempts(mock_get) -> None:
    mock_get.side_effect = aiohttp.ClientConnectionError("connection refused")

    async with aiohttp.ClientSession() as session:
        series = await client_for(session, attempts=2).fetch_series(
            "France", Status.DEATHS
        )

    assert mock_get.call_count == 2
    assert series.empty


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_retries_server_errors(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.raise_for_status = MagicMock(
        side_effect=response_error(502)
    )

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("France", Status.DEATHS)

    assert mock_get.call_count == 3
    assert series.empty


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_series_does_not_retry_client_errors(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.raise_for_status = MagicMock(
        side_effect=response_error(404)
    )

    async with aiohttp.ClientSession() as session:
        series = await client_for(session).fetch_series("France", Status.DEATHS)

    assert mock_get.call_count == 1
    assert series.empty


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_population_success(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(
        side_effect=[{"All": {"confirmed": 2604595, "population": 64979548}}]
    )

    async with aiohttp.ClientSession() as session:
        population = await client_for(session).fetch_population("France")

    mock_get.assert_called_once_with(BASE_URL + "cases/", params={"country": "France"})
    assert population == 64979548


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_population_missing(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(
        side_effect=[{"All": {"confirmed": 2604595}}]
    )

    async with aiohttp.ClientSession() as session:
        population = await client_for(session).fetch_population("France")

    assert population is None


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_population_unknown_country(mock_get) -> None:
    mock_get.return_value.__aenter__.return_value.json = AsyncMock(side_effect=[{}])

    async with aiohttp.ClientSession() as session:
        population = await client_for(session).fetch_population("Atlantis")

    assert population is None


@pytest.mark.asyncio
@patch("aiohttp.ClientSession.get")
async def test_fetch_population_upstream_down(mock_get) -> None:
    mock_get.side_effect = aiohttp.ClientConnectionError("connection refused")

    async with aiohttp.ClientSession() as session:
        population = await client_for(session).fetch_population("France")

    assert mock_get.call_count == 3
    assert population is None
