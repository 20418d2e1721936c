import pydantic
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    UPSTREAM_URL: pydantic.HttpUrl = pydantic.HttpUrl(
        "https://covid-api.mmediagroup.fr/v1/"
    )
    """Base URL of the COVID statistics API."""

    REQUEST_TIMEOUT: float = 10.0
    """Timeout of a single upstream call, in seconds."""

    REQUEST_DEADLINE: float = 60.0
    """Deadline of a whole aggregate query, in seconds."""

    RETRY_ATTEMPTS: int = 3
    """Number of attempts per upstream call."""

    RETRY_BACKOFF: float = 0.5
    """Initial backoff between upstream attempts, in seconds."""

    MAX_CONNECTIONS: int = 32
    """Size of the upstream connection pool."""

    DATE_FORMAT: str = "%d-%m-%Y"
    """Format of the date query parameters."""

    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"

    PORT: int = 8000

    class Config:
        env_prefix = "COVID_WATCH_"
        env_file = ".env"


CONFIG = AppConfig()
