from datetime import date
from typing import Optional

import pandas as pd
import pytest

from covid_watch.modules.metrics import to_series
from covid_watch.modules.upstream import Status
from covid_watch.modules.watchlist import Watchlist


class FakeUpstream:
    """Upstream client answering from in-memory histories and populations."""

    def __init__(
        self,
        histories: dict[tuple[str, Status], dict[date, int]],
        populations: dict[str, int],
    ) -> None:
        self.histories = histories
        self.populations = populations
        self.series_calls: list[tuple[str, Status]] = []
        self.population_calls: list[str] = []

    async def fetch_series(self, country: str, status: Status) -> pd.Series:
        self.series_calls.append((country, status))
        return to_series(self.histories.get((country, status), {}))

    async def fetch_population(self, country: str) -> Optional[int]:
        self.population_calls.append(country)
        return self.populations.get(country)

    async def close(self) -> None:
        pass


@pytest.fixture
def histories() -> dict[tuple[str, Status], dict[date, int]]:
    return {
        ("US", Status.DEATHS): {
            date(2020, 12, 31): 100,
            date(2021, 1, 1): 110,
            date(2021, 1, 2): 130,
            date(2021, 1, 3): 160,
        },
        ("IT", Status.DEATHS): {
            date(2020, 12, 31): 50,
            date(2021, 1, 1): 54,
            date(2021, 1, 2): 57,
            date(2021, 1, 3): 80,
        },
        ("US", Status.CONFIRMED): {
            date(2020, 12, 31): 1000,
            date(2021, 1, 1): 1300,
            date(2021, 1, 2): 1500,
            date(2021, 1, 3): 1600,
        },
        ("IT", Status.CONFIRMED): {
            date(2020, 12, 31): 400,
            date(2021, 1, 1): 700,
            date(2021, 1, 2): 1000,
            date(2021, 1, 3): 1100,
        },
    }


@pytest.fixture
def populations() -> dict[str, int]:
    return {"US": 1000, "IT": 500}


@pytest.fixture
def upstream(histories, populations) -> FakeUpstream:
    return FakeUpstream(histories, populations)


@pytest.fixture
def watchlist() -> Watchlist:
    return Watchlist()
