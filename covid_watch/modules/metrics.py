### Metric computations over date series


import math
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd
import pydantic


class CountryAndRatio(pydantic.BaseModel):
    country: str = pydantic.Field(..., description="Country code")
    ratio: Optional[float] = pydantic.Field(
        ..., description="Daily delta relative to the population"
    )

    @pydantic.field_serializer("ratio")
    def serialize_ratio(self, ratio: Optional[float]) -> Union[float, str, None]:
        """
        JSON has no infinity nor NaN, those are written as "Infinity",
        "-Infinity" and "NaN" so that only an unavailable ratio becomes null.
        """
        if ratio is None or math.isfinite(ratio):
            return ratio
        if math.isnan(ratio):
            return "NaN"
        return "Infinity" if ratio > 0 else "-Infinity"


NO_COUNTRY = CountryAndRatio(country="", ratio=float("-inf"))
"""Result of a highest ratio search over no countries at all."""


def date_range(from_date: date, to_date: date) -> list[date]:
    """
    Dates from ``from_date`` up to, but excluding, ``to_date``.
    """
    return [from_date + timedelta(days=n) for n in range((to_date - from_date).days)]


def to_series(dates: Mapping[date, int]) -> pd.Series:
    """
    Convert an upstream date -> cumulative count mapping to a series indexed
    by calendar day.
    """
    return pd.Series(
        list(dates.values()),
        index=pd.to_datetime(list(dates.keys())),
        dtype="int64",
    ).sort_index()


def daily_deltas(
    series: pd.Series, from_date: date, to_date: date
) -> dict[date, Optional[int]]:
    """
    Daily difference of a cumulative series for every date in
    ``[from_date, to_date)``. A date whose own count or the count of the day
    before is missing maps to ``None``.
    """

    days = date_range(from_date, to_date)
    if not days:
        return {}

    deltas = series - series.shift(1, freq="D")
    window = deltas.reindex(pd.to_datetime(days))

    return {
        day: None if pd.isna(value) else int(value)
        for day, value in zip(days, window.to_list())
    }


def daily_delta(series: pd.Series, requested_date: date) -> Optional[int]:
    return daily_deltas(series, requested_date, requested_date + timedelta(days=1))[
        requested_date
    ]


def per_capita_ratio(
    delta: Optional[int], population: Optional[int]
) -> Optional[float]:
    """
    ``delta / population`` as a float. A zero population yields an infinite or
    NaN ratio, a missing input yields ``None``.
    """
    if delta is None or population is None:
        return None

    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(delta) / np.float64(population))


def _rank(candidate: CountryAndRatio) -> float:
    if candidate.ratio is None or math.isnan(candidate.ratio):
        return float("-inf")
    return candidate.ratio


def highest_ratio(candidates: Iterable[CountryAndRatio]) -> CountryAndRatio:
    """
    The candidate with the highest ratio, ``NO_COUNTRY`` when there is none.
    Unavailable and NaN ratios rank below every other value.
    """
    return max(candidates, key=_rank, default=NO_COUNTRY)
