"""Reference server.

This server stands in for the COVID statistics API when running the service
locally.

```shell
pip install litestar Faker uvicorn
uvicorn ref_server:app --port 8080
COVID_WATCH_UPSTREAM_URL=http://127.0.0.1:8080/v1/ python -m covid_watch.app
```

Schema is available at http://127.0.0.1:8080/schema (or http://127.0.0.1:8080/schema/swagger).
"""

from datetime import date, timedelta
from random import Random
from typing import Any

import uvicorn
from faker import Faker
from litestar import Litestar, get
from litestar.params import Parameter

faker = Faker()
Faker.seed(42)

FIRST_DATE = date(2020, 1, 22)
DAYS = 800

COUNTRIES = sorted({faker.country_code() for _ in range(10)})
POPULATIONS = {country: faker.random_int(100_000, 300_000_000) for country in COUNTRIES}


def cumulative_counts(country: str, status: str) -> dict[str, int]:
    """
    Deterministic cumulative history of a country, never decreasing.
    """
    rng = Random(f"{country}:{status}")
    scale = 50 if status == "deaths" else 5000
    total = 0
    dates = {}
    for n in range(DAYS):
        total += rng.randint(0, scale)
        dates[str(FIRST_DATE + timedelta(days=n))] = total
    return dates


@get("/v1/history", cache=True)
async def get_history(
    country: str, status: str = Parameter(pattern="^(deaths|confirmed)$")
) -> dict[str, Any]:
    if country not in POPULATIONS:
        return {}
    return {
        "All": {
            "country": country,
            "population": POPULATIONS[country],
            "dates": cumulative_counts(country, status),
        }
    }


@get("/v1/cases", cache=True)
async def get_cases(country: str) -> dict[str, Any]:
    if country not in POPULATIONS:
        return {}
    confirmed = cumulative_counts(country, "confirmed")
    deaths = cumulative_counts(country, "deaths")
    last = str(FIRST_DATE + timedelta(days=DAYS - 1))
    return {
        "All": {
            "confirmed": confirmed[last],
            "deaths": deaths[last],
            "country": country,
            "population": POPULATIONS[country],
        }
    }


@get("/v1/countries")
async def get_countries() -> list[str]:
    return COUNTRIES


app = Litestar([get_history, get_cases, get_countries])

if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8080)
