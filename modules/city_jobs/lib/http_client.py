# city_jobs/http_client.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

LOG = logging.getLogger(__name__)


class FetchError(Exception):
    """
    A page could not be fetched: non-2xx status, transport failure, or an
    unusable body. status/reason are None for transport-level failures.
    """

    def __init__(self, message: str, *, url: str = "", status: int | None = None, reason: str | None = None):
        super().__init__(message)
        self.url = url
        self.status = status
        self.reason = reason


class HttpClient:
    """Shared HTTP client with explicit timeouts and bounded, backed-off retries."""

    def __init__(
        self,
        timeout: float = 20.0,
        user_agent: str = "Mozilla/5.0",
        *,
        max_attempts: int = 3,
        backoff_factor: float = 1.0,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        })

        # total counts retries, not attempts: max_attempts=3 -> 1 try + 2 retries.
        retry = Retry(
            total=max(max_attempts - 1, 0),
            backoff_factor=backoff_factor,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def get_text(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> str:
        """GET and return decoded text; any failure surfaces as FetchError."""
        try:
            resp = self.session.get(url, params=params, timeout=timeout or self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Request to {url} failed: {e!r}", url=url) from e

        if not resp.ok:
            raise FetchError(
                f"Failed to fetch {url}: {resp.status_code} {resp.reason}",
                url=url,
                status=resp.status_code,
                reason=resp.reason,
            )
        if not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return resp.text

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)
