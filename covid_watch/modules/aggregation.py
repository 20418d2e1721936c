### Aggregate queries fanning out to the upstream API


import asyncio
import logging
from datetime import date
from typing import Optional

import pandas as pd

from covid_watch.modules.config import CONFIG
from covid_watch.modules.exceptions import SeriesUnavailableError
from covid_watch.modules.metrics import (
    CountryAndRatio,
    daily_delta,
    daily_deltas,
    date_range,
    highest_ratio,
    per_capita_ratio,
)
from covid_watch.modules.upstream import Status, UpstreamClient
from covid_watch.modules.watchlist import WatchlistStore


async def daily_new_cases(
    upstream: UpstreamClient,
    country: str,
    requested_date: date,
    status: Status = Status.DEATHS,
    deadline: Optional[float] = None,
) -> int:
    """
    Difference between the cumulative count of given date and the day before
    for a single country.

    Raises:
        SeriesUnavailableError: if either day is missing from the history
    """

    series = await asyncio.wait_for(
        upstream.fetch_series(country, status),
        timeout=CONFIG.REQUEST_DEADLINE if deadline is None else deadline,
    )

    delta = daily_delta(series, requested_date)
    if delta is None:
        raise SeriesUnavailableError(country, requested_date)

    return delta


async def cases_per_country_between_dates(
    upstream: UpstreamClient,
    watchlist: WatchlistStore,
    user: str,
    from_date: date,
    to_date: date,
    status: Status,
    deadline: Optional[float] = None,
) -> dict[str, dict[date, Optional[int]]]:
    """
    Daily deltas for every country the user tracks, for every date in
    ``[from_date, to_date)``. Histories are fetched concurrently, one per
    country. Dates the history does not cover map to ``None``.
    """

    countries = sorted(watchlist.list_countries(user))

    logging.info(
        f"Collecting {status.value} of {len(countries)} countries for {user} "
        f"between {from_date} and {to_date}"
    )

    series_per_country: list[pd.Series] = await asyncio.wait_for(
        asyncio.gather(
            *(upstream.fetch_series(country, status) for country in countries)
        ),
        timeout=CONFIG.REQUEST_DEADLINE if deadline is None else deadline,
    )

    return {
        country: daily_deltas(series, from_date, to_date)
        for country, series in zip(countries, series_per_country)
    }


async def _fetch_country(
    upstream: UpstreamClient, country: str, status: Status
) -> tuple[pd.Series, Optional[int]]:
    series, population = await asyncio.gather(
        upstream.fetch_series(country, status), upstream.fetch_population(country)
    )
    return series, population


async def highest_ratio_per_date(
    upstream: UpstreamClient,
    watchlist: WatchlistStore,
    user: str,
    from_date: date,
    to_date: date,
    status: Status,
    deadline: Optional[float] = None,
) -> dict[date, CountryAndRatio]:
    """
    For every date in ``[from_date, to_date)`` the tracked country whose daily
    delta relative to its population is the highest.

    History and population of each country are fetched once, concurrently,
    and reused for every date of the range. A date on which the user tracks
    no countries maps to ``NO_COUNTRY``.
    """

    countries = sorted(watchlist.list_countries(user))

    logging.info(
        f"Ranking {status.value} per capita of {len(countries)} countries for "
        f"{user} between {from_date} and {to_date}"
    )

    fetched = await asyncio.wait_for(
        asyncio.gather(
            *(_fetch_country(upstream, country, status) for country in countries)
        ),
        timeout=CONFIG.REQUEST_DEADLINE if deadline is None else deadline,
    )

    per_country = {
        country: (daily_deltas(series, from_date, to_date), population)
        for country, (series, population) in zip(countries, fetched)
    }

    return {
        requested_date: highest_ratio(
            CountryAndRatio(
                country=country,
                ratio=per_capita_ratio(deltas[requested_date], population),
            )
            for country, (deltas, population) in per_country.items()
        )
        for requested_date in date_range(from_date, to_date)
    }
