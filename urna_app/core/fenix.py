from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import requests
from django.conf import settings
from django.core.cache import cache

from core.eligibility import DegreeEntry, ElectionUser
from core.errors import FenixError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FenixConfig:
    api_base_url: str
    oauth_base_url: str
    client_id: str
    client_secret: str
    redirect_url: str
    cache_ttl_seconds: int = 600
    request_timeout_seconds: int = 10

    @classmethod
    def from_settings(cls) -> FenixConfig:
        return cls(
            api_base_url=str(settings.FENIX_API_BASE_URL).rstrip("/"),
            oauth_base_url=str(settings.FENIX_OAUTH_BASE_URL).rstrip("/"),
            client_id=str(settings.FENIX_CLIENT_ID),
            client_secret=str(settings.FENIX_CLIENT_SECRET),
            redirect_url=str(settings.FENIX_REDIRECT_URL),
            cache_ttl_seconds=int(settings.FENIX_CACHE_TTL_SECONDS),
            request_timeout_seconds=int(settings.FENIX_REQUEST_TIMEOUT_SECONDS),
        )

    def to_public_dict(self) -> dict[str, str]:
        # Safe to hand to browsers; the client secret stays server-side.
        return {
            "client_id": self.client_id,
            "redirect_url": self.redirect_url,
            "oauth_authorize_url": f"{self.oauth_base_url}/userdialog",
        }


@dataclass(frozen=True)
class Degree:
    id: str
    acronym: str
    name: str
    degree_type: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "acronym": self.acronym,
            "name": self.name,
            "degree_type": self.degree_type,
        }


@dataclass(frozen=True)
class PersonSearchResult:
    username: str
    display_name: str


@dataclass(frozen=True)
class FenixLogin:
    user: ElectionUser
    access_token: str


def _degrees_cache_key() -> str:
    return "fenix_degrees"


def _active_year_cache_key() -> str:
    return "fenix_active_year"


@contextmanager
def _parsing(what: str) -> Iterator[None]:
    """Report a Fenix payload of the wrong shape as an upstream failure."""

    try:
        yield
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        logger.warning("Malformed Fenix response what=%s error=%r", what, exc)
        raise FenixError(f"malformed Fenix {what} response") from exc


def _degree_from_json(item: dict[str, Any]) -> Degree:
    degree_type = item.get("degreeType") or item.get("type") or ""
    if isinstance(degree_type, dict):
        degree_type = degree_type.get("name") or ""
    return Degree(
        id=str(item["id"]),
        acronym=str(item.get("acronym") or ""),
        name=str(item.get("name") or ""),
        degree_type=str(degree_type),
    )


class FenixService:
    """Client for the university's Fenix API.

    The degree catalog and the active academic year are shared through Django's
    cache for `cache_ttl_seconds`. When an entry expires, one thread per key
    refreshes it while the others wait for the result.
    """

    def __init__(self, config: FenixConfig, *, session: requests.Session | None = None) -> None:
        self.config = config
        self._session = session or requests.Session()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _cached[T](self, key: str, fetch: Callable[[], T]) -> T:
        value = cache.get(key)
        if value is not None:
            return value

        with self._lock_for(key):
            # Another thread may have refreshed the entry while we waited.
            value = cache.get(key)
            if value is not None:
                return value
            value = fetch()
            cache.set(key, value, timeout=self.config.cache_ttl_seconds)
            return value

    def _request(
        self,
        method: str,
        url: str,
        *,
        access_token: str | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                headers=headers,
                timeout=self.config.request_timeout_seconds,
            )
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.warning("Fenix request failed method=%s url=%s error=%s", method, url, exc)
            raise FenixError(f"Fenix request to {url} failed") from exc

    def _api_get(self, path: str, *, access_token: str | None = None, params: dict[str, str] | None = None) -> Any:
        return self._request("GET", f"{self.config.api_base_url}{path}", access_token=access_token, params=params)

    def get_degrees(self) -> list[Degree]:
        def _fetch() -> list[Degree]:
            payload = self._api_get("/degrees")
            with _parsing("degrees"):
                degrees = [_degree_from_json(item) for item in payload or []]
            logger.info("Refreshed Fenix degree catalog count=%s", len(degrees))
            return degrees

        return self._cached(_degrees_cache_key(), _fetch)

    def get_degree(self, degree_id: str) -> Degree | None:
        for degree in self.get_degrees():
            if degree.id == degree_id:
                return degree
        return None

    def get_active_year(self) -> str:
        def _fetch() -> str:
            payload = self._api_get("/academicterms/current")
            with _parsing("academic term"):
                year = str((payload or {}).get("academicYear") or "").strip()
            if not year:
                raise FenixError("Fenix did not report an active academic year")
            logger.info("Refreshed Fenix active academic year year=%s", year)
            return year

        return self._cached(_active_year_cache_key(), _fetch)

    def search_user_in_degree(self, *, access_token: str, query: str, degree_id: str) -> list[PersonSearchResult]:
        payload = self._api_get(
            f"/degrees/{degree_id}/students",
            access_token=access_token,
            params={"query": query},
        )
        with _parsing("student search"):
            return [
                PersonSearchResult(username=str(item["username"]), display_name=str(item.get("displayName") or ""))
                for item in (payload or {}).get("items", [])
            ]

    def authenticate_from_code(self, code: str) -> FenixLogin:
        """Exchange an OAuth authorization code for the student's identity and enrollments."""

        tokens = self._request(
            "POST",
            f"{self.config.oauth_base_url}/access_token",
            params={
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "redirect_uri": self.config.redirect_url,
                "code": code,
                "grant_type": "authorization_code",
            },
        )
        with _parsing("access token"):
            access_token = str((tokens or {}).get("access_token") or "")
        if not access_token:
            raise FenixError("Fenix OAuth response had no access token")

        person = self._api_get("/person", access_token=access_token)
        registrations = self._api_get("/student/registrations", access_token=access_token)

        with _parsing("person"):
            entries = tuple(
                DegreeEntry(
                    degree_id=str(registration["degree"]["id"]),
                    curricular_year=int(registration["curricularYear"]),
                )
                for registration in registrations or []
                if registration.get("degree") and registration.get("curricularYear") is not None
            )
            user = ElectionUser(
                username=str(person["username"]),
                display_name=str(person.get("displayName") or person["username"]),
                degree_entries=entries,
            )
        logger.info("Fenix login username=%s degrees=%s", user.username, len(entries))
        return FenixLogin(user=user, access_token=access_token)
