from __future__ import annotations

from typing import Any

from ..config import Settings
from ..http_client import FetchError
from ..models import Listing, ListingPage
from ..utils import page_count, paginate
from .base import BaseSource
from .registry import register


@register
class StubSource(BaseSource):
    """
    A zero-network source used for tests and dry-runs.

    params may contain:
      - listings: list[dict]        # camelCase listing dicts; overrides total_listings
      - total_listings: int         # synthesize "stub-1".."stub-N" when listings is absent
      - posted_dates: {id: date}    # per-listing detail result (missing id -> default_posted_date)
      - default_posted_date: str    # OPTIONAL, None means "detail page has no date"
      - failing_pages: list[int]    # fetch_page raises FetchError(503) for these pages
      - failing_details: list[str]  # fetch_detail raises FetchError(404) for these ids

    Behavior:
      - Pages are cut from the full list with the requested page_size.
      - Records every call in `page_calls` / `detail_calls` for assertions.
    """

    kind = "stub"

    def __init__(self, params: dict[str, Any] | None = None) -> None:
        params = dict(params or {})

        raw = params.get("listings")
        if isinstance(raw, list):
            self.listings = [Listing.from_dict(item) for item in raw if isinstance(item, dict)]
        else:
            n = int(params.get("total_listings") or 0)
            self.listings = [
                Listing(id=f"stub-{i}", title=f"Stub Job {i}", agency="STUB AGENCY", url=f"/job/stub-{i}")
                for i in range(1, n + 1)
            ]

        self.posted_dates: dict[str, str | None] = dict(params.get("posted_dates") or {})
        self.default_posted_date: str | None = params.get("default_posted_date")
        self.failing_pages = {int(p) for p in params.get("failing_pages") or []}
        self.failing_details = {str(i) for i in params.get("failing_details") or []}

        self._by_url = {item.url: item.id for item in self.listings}
        self.page_calls: list[tuple[int, int]] = []
        self.detail_calls: list[str] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> StubSource:
        return cls(settings.source.params)

    def fetch_page(self, page: int, page_size: int) -> ListingPage:
        self.page_calls.append((page, page_size))
        if page in self.failing_pages:
            raise FetchError(
                f"Failed to fetch jobs: 503 Service Unavailable (page {page})",
                url=f"stub://jobs?page={page}",
                status=503,
                reason="Service Unavailable",
            )
        return ListingPage(
            listings=paginate(self.listings, page, page_size),
            total_pages=max(page_count(len(self.listings), page_size), 1),
        )

    def fetch_detail(self, url: str) -> str | None:
        self.detail_calls.append(url)
        listing_id = self._by_url.get(url, url)
        if listing_id in self.failing_details:
            raise FetchError(
                f"Failed to fetch job details: 404 Not Found ({url})",
                url=url,
                status=404,
                reason="Not Found",
            )
        return self.posted_dates.get(listing_id, self.default_posted_date)
