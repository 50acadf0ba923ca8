"""gym_sync.fetch

HTTP client for the USA Gymnastics meet API.

Every request is a single GET with an explicit timeout.  A non-2xx response, a
transport error (timeout, DNS, connection reset) or an undecodable body is
returned as a FetchFailed outcome rather than raised, so batch callers can skip
the resource and continue.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

import requests

from gym_sync.shared import FetchFailed

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.myusagym.com"
DEFAULT_TIMEOUT_SECONDS = 30.0

SANCTION_PATH = "/v2/sanctions/{sanction_id}"
RESULT_SET_PATH = "/v2/resultsSets/{result_set_id}"
PAST_MEETS_PATH = "/v1/meets/past"


@dataclass
class ApiSettings:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    user_agent: str = "GymMeetSync/1.0"

    @classmethod
    def from_env(cls) -> ApiSettings:
        return cls(
            base_url=os.environ.get("USAGYM_API_BASE_URL", DEFAULT_BASE_URL),
            timeout=float(os.environ.get("USAGYM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
        )


class UsagymClient:
    """Thin wrapper over a requests.Session; one in-flight request at a time."""

    def __init__(
        self,
        settings: ApiSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings or ApiSettings()
        self._session = session or requests.Session()
        self._session.headers.update(
            {"User-Agent": self.settings.user_agent, "Accept": "application/json"}
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> UsagymClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return self.settings.base_url.rstrip("/") + path

    def _get_json(
        self,
        path: str,
        resource: str,
        resource_id: int | None,
    ) -> Any | FetchFailed:
        url = self._url(path)
        try:
            resp = self._session.get(url, timeout=self.settings.timeout)
        except requests.RequestException as exc:
            failure = FetchFailed(resource, resource_id, transport_error=f"{type(exc).__name__}: {exc}")
            log.warning("Network error fetching %s: %s", url, exc)
            return failure

        if not resp.ok:
            log.warning("Failed to fetch %s. Status: %s", url, resp.status_code)
            return FetchFailed(resource, resource_id, status_code=resp.status_code)

        try:
            return resp.json()
        except ValueError as exc:
            log.warning("Undecodable JSON from %s: %s", url, exc)
            return FetchFailed(resource, resource_id, transport_error=f"invalid JSON: {exc}")

    def fetch_sanction(self, sanction_id: int) -> dict[str, Any] | FetchFailed:
        """Full detail document for one sanction."""
        log.info("Fetching full details for sanction %s", sanction_id)
        return self._get_json(
            SANCTION_PATH.format(sanction_id=sanction_id), "sanction", sanction_id
        )

    def fetch_result_set(self, result_set_id: int) -> dict[str, Any] | FetchFailed:
        """Flat score list for one result set."""
        log.info("Fetching scores for result set %s", result_set_id)
        return self._get_json(
            RESULT_SET_PATH.format(result_set_id=result_set_id), "result_set", result_set_id
        )

    def fetch_past_meets(self) -> list[dict[str, Any]] | FetchFailed:
        """Lightweight listing of past meets (sanctionId, name, startDate, ...)."""
        return self._get_json(PAST_MEETS_PATH, "past_meets", None)
