from datetime import date


class UnauthorizedUserError(Exception):
    """Raised when a query references a user that was never registered."""

    def __init__(self, user: str) -> None:
        super().__init__(f"User {user!r} is not registered")
        self.user = user


class SeriesUnavailableError(Exception):
    """
    Raised when a daily delta cannot be computed for a single country because
    the upstream series is missing the requested day or the day before it.
    """

    def __init__(self, country: str, requested_date: date) -> None:
        super().__init__(
            f"No case history available for {country} around {requested_date}"
        )
        self.country = country
        self.requested_date = requested_date
