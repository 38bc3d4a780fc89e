# modules/city_jobs/lib/sources/cityjobs.py
from __future__ import annotations

import logging
from urllib.parse import urljoin

from ..config import Settings
from ..http_client import FetchError, HttpClient
from ..models import ListingPage
from ..parse import parse_listings, parse_posted_date, total_pages
from .base import BaseSource
from .registry import register

log = logging.getLogger(__name__)


@register
class CityJobsSource(BaseSource):
    """
    Live source for https://cityjobs.nyc.gov (Attrax vacancy board).

    Listing pages:  GET {base_url}/jobs?page=N&size=S
    Detail pages:   the tile's href, resolved against base_url when relative.
    """

    kind = "cityjobs"

    def __init__(self, client: HttpClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> CityJobsSource:
        client = HttpClient(
            timeout=settings.timeout_seconds,
            user_agent=settings.user_agent,
            max_attempts=settings.max_attempts,
            backoff_factor=settings.backoff_factor,
        )
        return cls(client, settings.base_url)

    def fetch_page(self, page: int, page_size: int) -> ListingPage:
        html = self._client.get_text(f"{self._base_url}/jobs", params={"page": page, "size": page_size})
        listings = parse_listings(html)
        pages = total_pages(html, page_size)
        log.debug("cityjobs page %d: %d listings, %d total pages", page, len(listings), pages)
        return ListingPage(listings=listings, total_pages=pages)

    def fetch_detail(self, url: str) -> str | None:
        if not url:
            raise FetchError("Listing has no detail URL", url=url)
        full_url = self.resolve_url(url)
        html = self._client.get_text(full_url)
        return parse_posted_date(html)

    def resolve_url(self, url: str) -> str:
        if url.startswith("http"):
            return url
        return urljoin(self._base_url + "/", url.lstrip("/"))

    def close(self) -> None:
        self._client.close()
