### Upstream COVID statistics API client


import asyncio
import enum
import logging
import urllib.parse
from datetime import date
from typing import Any, Dict, Optional

import aiohttp
import pandas as pd
import pydantic
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from covid_watch.modules.config import CONFIG
from covid_watch.modules.metrics import to_series

UPSTREAM_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


class Status(str, enum.Enum):
    DEATHS = "deaths"
    CONFIRMED = "confirmed"


Count = pydantic.conint(ge=-(2**63), lt=2**63)


class CountryHistory(pydantic.BaseModel):
    dates: Dict[date, Count] = pydantic.Field(  # type: ignore[valid-type]
        default_factory=dict, description="Cumulative count per calendar date"
    )


class HistoryResponse(pydantic.BaseModel):
    all: CountryHistory = pydantic.Field(..., alias="All")


class CountryCases(pydantic.BaseModel):
    population: Optional[int] = pydantic.Field(
        None, description="Population of the country"
    )


class CasesResponse(pydantic.BaseModel):
    all: CountryCases = pydantic.Field(..., alias="All")


def is_transient(exc: BaseException) -> bool:
    """
    Connection problems, timeouts and 5xx answers are worth another attempt,
    any other client error is not.
    """
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status >= 500
    return isinstance(exc, UPSTREAM_ERRORS)


class UpstreamClient:
    """
    Issues the two kinds of GET requests against the COVID statistics API
    through one shared aiohttp session.

    Both fetches are fail-soft: when the API cannot be reached after the
    configured retries, or its body does not decode into the expected shape,
    the failure is logged and an empty series / ``None`` population is
    returned instead of raising.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = str(CONFIG.UPSTREAM_URL),
        attempts: int = CONFIG.RETRY_ATTEMPTS,
        backoff: float = CONFIG.RETRY_BACKOFF,
    ) -> None:
        self.session = session
        self.base_url = base_url
        self.attempts = max(1, attempts)
        self.backoff = max(0.0, backoff)

    @classmethod
    def from_config(cls) -> "UpstreamClient":
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=CONFIG.REQUEST_TIMEOUT),
            connector=aiohttp.TCPConnector(limit=CONFIG.MAX_CONNECTIONS),
        )
        return cls(session)

    async def close(self) -> None:
        await self.session.close()

    async def _get_json(self, path: str, params: dict[str, str]) -> Any:
        url = urllib.parse.urljoin(self.base_url, path)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential_jitter(initial=self.backoff, jitter=self.backoff),
            retry=retry_if_exception(is_transient),
            reraise=True,
        ):
            with attempt:
                async with self.session.get(url, params=params) as response:
                    response.raise_for_status()
                    return await response.json(content_type=None)

    async def fetch_series(self, country: str, status: Status) -> pd.Series:
        """
        Fetches the cumulative case history of a country for given status.
        An empty series is returned when the history is unavailable.
        """

        logging.info(f"Fetching {status.value} history for {country}")

        try:
            data = await self._get_json(
                "history/", {"country": country, "status": status.value}
            )
            history = HistoryResponse.model_validate(data)
            series = to_series(history.all.dates)
        except UPSTREAM_ERRORS as e:
            logging.warning(f"Upstream failed for {country}:{status.value}: {e!r}")
            return to_series({})
        except (ValueError, OverflowError) as e:
            # json decoding, pydantic validation and int64 conversion errors
            logging.warning(f"No history found for {country}:{status.value}: {e}")
            return to_series({})

        return series

    async def fetch_population(self, country: str) -> Optional[int]:
        """
        Fetches the current population of a country, ``None`` when unavailable.
        """

        logging.info(f"Fetching population for {country}")

        try:
            data = await self._get_json("cases/", {"country": country})
            cases = CasesResponse.model_validate(data)
        except UPSTREAM_ERRORS as e:
            logging.warning(f"Upstream failed for {country} population: {e!r}")
            return None
        except ValueError as e:
            logging.warning(f"No population found for {country}: {e}")
            return None

        if cases.all.population is None:
            logging.warning(f"No population found for {country}")

        return cases.all.population
