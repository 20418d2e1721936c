from datetime import date, datetime
from typing import Dict, Optional

import pydantic
from litestar import get
from litestar.datastructures import State
from litestar.exceptions import ValidationException
from litestar.params import Parameter

from covid_watch.modules.aggregation import (
    cases_per_country_between_dates,
    daily_new_cases,
    highest_ratio_per_date,
)
from covid_watch.modules.config import CONFIG
from covid_watch.modules.metrics import CountryAndRatio
from covid_watch.modules.upstream import Status


def parse_date(value: str, name: str) -> date:
    """
    Parse a date query parameter written in the configured day-month-year format.
    """
    try:
        return datetime.strptime(value, CONFIG.DATE_FORMAT).date()
    except ValueError:
        raise ValidationException(
            detail=f"Invalid {name} date {value!r}, expected dd-MM-yyyy"
        ) from None


@get(
    "/1/daily-new-confirmed-cases",
    description="""
    Difference between the cumulative count of the requested date and the day
    before, for a single country

    Args:
        country (str): The country as known to the upstream API
        requested_date (str): The date, dd-MM-yyyy
        status (Status): Which history to use, deaths by default

    Returns:
        int: The daily delta
    """,
)
async def daily_new_confirmed_cases(
    state: State,
    country: str = Parameter(query="country", description="The country"),
    requested_date: str = Parameter(query="date", description="The date, dd-MM-yyyy"),
    status: Status = Parameter(
        query="status", default=Status.DEATHS, description="deaths or confirmed"
    ),
) -> int:
    return await daily_new_cases(
        state.upstream, country, parse_date(requested_date, "date"), status
    )


@get("/2/register", description="Registers the user with no tracked countries")
async def register(
    state: State, user: str = Parameter(query="user", description="The user")
) -> None:
    state.watchlist.register(user)


@get("/2/add-country", description="Adds a country to the countries the user tracks")
async def add_country(
    state: State,
    user: str = Parameter(query="user", description="The user"),
    country: str = Parameter(query="country", description="The country"),
) -> None:
    state.watchlist.add_country(user, country)


@get(
    "/2/remove-country",
    description="Removes a country from the countries the user tracks",
)
async def remove_country(
    state: State,
    user: str = Parameter(query="user", description="The user"),
    country: str = Parameter(query="country", description="The country"),
) -> None:
    state.watchlist.remove_country(user, country)


@get("/2/get-countries", description="Lists the countries the user tracks")
async def get_countries(
    state: State, user: str = Parameter(query="user", description="The user")
) -> list[str]:
    return sorted(state.watchlist.list_countries(user))


DateCases = pydantic.RootModel[Dict[str, Optional[int]]]

CountryCases = pydantic.RootModel[Dict[str, DateCases]]  # type: ignore[valid-type]

DateRatios = pydantic.RootModel[Dict[str, CountryAndRatio]]


async def _cases_between_dates(
    state: State, user: str, from_date: str, to_date: str, status: Status
) -> dict[str, dict[str, Optional[int]]]:
    cases = await cases_per_country_between_dates(
        state.upstream,
        state.watchlist,
        user,
        parse_date(from_date, "from"),
        parse_date(to_date, "to"),
        status,
    )

    return {
        country: {str(day): delta for day, delta in deltas.items()}
        for country, deltas in cases.items()
    }


async def _highest_ratios(
    state: State, user: str, from_date: str, to_date: str, status: Status
) -> dict[str, CountryAndRatio]:
    ratios = await highest_ratio_per_date(
        state.upstream,
        state.watchlist,
        user,
        parse_date(from_date, "from"),
        parse_date(to_date, "to"),
        status,
    )

    return {str(day): highest for day, highest in ratios.items()}


@get(
    "/2/get-deaths-per-country-between-dates",
    response_model=CountryCases,
    description="""
    Daily deaths of every country the user tracks between given dates

    Args:
        user (str): The user
        from_date (str): The first date, dd-MM-yyyy
        to_date (str): The date after the last one, dd-MM-yyyy

    Returns:
        CountryCases: Country to date to daily deaths mapping
    """,
)
async def get_deaths_per_country_between_dates(
    state: State,
    user: str = Parameter(query="user", description="The user"),
    from_date: str = Parameter(query="from", description="The start date"),
    to_date: str = Parameter(query="to", description="The end date, excluded"),
) -> dict[str, dict[str, Optional[int]]]:
    return await _cases_between_dates(state, user, from_date, to_date, Status.DEATHS)


@get(
    "/2/get-confirmed-per-country-between-dates",
    response_model=CountryCases,
    description="""
    Daily confirmed cases of every country the user tracks between given dates

    Args:
        user (str): The user
        from_date (str): The first date, dd-MM-yyyy
        to_date (str): The date after the last one, dd-MM-yyyy

    Returns:
        CountryCases: Country to date to daily confirmed cases mapping
    """,
)
async def get_confirmed_per_country_between_dates(
    state: State,
    user: str = Parameter(query="user", description="The user"),
    from_date: str = Parameter(query="from", description="The start date"),
    to_date: str = Parameter(query="to", description="The end date, excluded"),
) -> dict[str, dict[str, Optional[int]]]:
    return await _cases_between_dates(
        state, user, from_date, to_date, Status.CONFIRMED
    )


@get(
    "/2/get-highest-deaths-cases-relative-to-country",
    response_model=DateRatios,
    description="""
    For each date, the tracked country with the most daily deaths relative to
    its population

    Args:
        user (str): The user
        from_date (str): The first date, dd-MM-yyyy
        to_date (str): The date after the last one, dd-MM-yyyy

    Returns:
        DateRatios: Date to country and ratio mapping
    """,
)
async def get_highest_deaths_cases_relative_to_country(
    state: State,
    user: str = Parameter(query="user", description="The user"),
    from_date: str = Parameter(query="from", description="The start date"),
    to_date: str = Parameter(query="to", description="The end date, excluded"),
) -> dict[str, CountryAndRatio]:
    return await _highest_ratios(state, user, from_date, to_date, Status.DEATHS)


@get(
    "/2/get-highest-confirmed-cases-relative-to-country",
    response_model=DateRatios,
    description="""
    For each date, the tracked country with the most daily confirmed cases
    relative to its population

    Args:
        user (str): The user
        from_date (str): The first date, dd-MM-yyyy
        to_date (str): The date after the last one, dd-MM-yyyy

    Returns:
        DateRatios: Date to country and ratio mapping
    """,
)
async def get_highest_confirmed_cases_relative_to_country(
    state: State,
    user: str = Parameter(query="user", description="The user"),
    from_date: str = Parameter(query="from", description="The start date"),
    to_date: str = Parameter(query="to", description="The end date, excluded"),
) -> dict[str, CountryAndRatio]:
    return await _highest_ratios(state, user, from_date, to_date, Status.CONFIRMED)


ROUTES = [
    daily_new_confirmed_cases,
    register,
    add_country,
    remove_country,
    get_countries,
    get_deaths_per_country_between_dates,
    get_confirmed_per_country_between_dates,
    get_highest_deaths_cases_relative_to_country,
    get_highest_confirmed_cases_relative_to_country,
]
