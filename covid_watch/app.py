import asyncio
import logging
from typing import Any, Optional

from litestar import Litestar, Request, Response
from litestar.status_codes import (
    HTTP_401_UNAUTHORIZED,
    HTTP_502_BAD_GATEWAY,
    HTTP_504_GATEWAY_TIMEOUT,
)

from covid_watch.modules.config import CONFIG
from covid_watch.modules.exceptions import SeriesUnavailableError, UnauthorizedUserError
from covid_watch.modules.routes import ROUTES
from covid_watch.modules.upstream import UpstreamClient
from covid_watch.modules.watchlist import Watchlist, WatchlistStore


def _error_response(status_code: int, detail: str) -> Response[dict[str, Any]]:
    return Response({"status_code": status_code, "detail": detail}, status_code=status_code)


def unauthorized_handler(_: Request, exc: UnauthorizedUserError) -> Response:
    return _error_response(HTTP_401_UNAUTHORIZED, str(exc))


def unavailable_handler(_: Request, exc: SeriesUnavailableError) -> Response:
    logging.warning(str(exc))
    return _error_response(HTTP_502_BAD_GATEWAY, str(exc))


def deadline_handler(request: Request, _: asyncio.TimeoutError) -> Response:
    logging.error(f"Deadline of {CONFIG.REQUEST_DEADLINE}s exceeded for {request.url}")
    return _error_response(HTTP_504_GATEWAY_TIMEOUT, "Upstream API did not answer in time")


def create_app(
    upstream: Optional[UpstreamClient] = None,
    watchlist: Optional[WatchlistStore] = None,
) -> Litestar:
    """
    Build the application around one upstream client and one watchlist.
    Without an upstream client, one is opened on startup from the configuration
    and closed on shutdown.
    """

    async def open_upstream(app: Litestar) -> None:
        if upstream is None:
            app.state.upstream = UpstreamClient.from_config()

    async def close_upstream(app: Litestar) -> None:
        if upstream is None:
            await app.state.upstream.close()

    app = Litestar(
        ROUTES,
        on_startup=[open_upstream],
        on_shutdown=[close_upstream],
        exception_handlers={
            UnauthorizedUserError: unauthorized_handler,
            SeriesUnavailableError: unavailable_handler,
            asyncio.TimeoutError: deadline_handler,
        },
    )
    app.state.upstream = upstream
    app.state.watchlist = watchlist if watchlist is not None else Watchlist()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=CONFIG.LOG_LEVEL)
    logging.info(f"Starting the COVID watch server {CONFIG}")

    uvicorn.run(app, host=CONFIG.HOST, port=CONFIG.PORT)
