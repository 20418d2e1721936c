### In-memory registry of the countries each user tracks


import logging
import threading
from typing import Protocol

from covid_watch.modules.exceptions import UnauthorizedUserError


class WatchlistStore(Protocol):
    def register(self, user: str) -> None: ...

    def add_country(self, user: str, country: str) -> None: ...

    def remove_country(self, user: str, country: str) -> None: ...

    def list_countries(self, user: str) -> frozenset[str]: ...


class Watchlist:
    """
    Maps user identifiers to the set of countries they track.

    A user that was never registered is different from a registered user
    tracking no countries: every operation but ``register`` raises
    ``UnauthorizedUserError`` for the former. Operations on one user are
    serialized by a lock of its own, so distinct users never wait on each other.
    """

    def __init__(self) -> None:
        self._countries: dict[str, set[str]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, user: str) -> threading.Lock:
        with self._registry_lock:
            try:
                return self._locks[user]
            except KeyError:
                raise UnauthorizedUserError(user) from None

    def register(self, user: str) -> None:
        with self._registry_lock:
            if user in self._countries:
                return
            self._countries[user] = set()
            self._locks[user] = threading.Lock()

        logging.info(f"Registered user {user}")

    def add_country(self, user: str, country: str) -> None:
        with self._lock_for(user):
            self._countries[user].add(country)

        logging.info(f"User {user} tracks {country}")

    def remove_country(self, user: str, country: str) -> None:
        with self._lock_for(user):
            self._countries[user].discard(country)

        logging.info(f"User {user} no longer tracks {country}")

    def list_countries(self, user: str) -> frozenset[str]:
        with self._lock_for(user):
            return frozenset(self._countries[user])
