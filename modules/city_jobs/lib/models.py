from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Core (scraped) fields, in the on-disk key spelling used by jobs.json.
_CORE_KEYS = {
    "title": "title",
    "salary": "salary",
    "location": "location",
    "job_type": "jobType",
    "category": "category",
    "experience_level": "experienceLevel",
    "agency": "agency",
    "description": "description",
    "url": "url",
}


@dataclass(frozen=True)
class Listing:
    """
    A single job listing: scraped core fields plus the posted-date enrichment.

    Core fields are overwritten wholesale on every rescan. `posted_date` and
    `details_fetched` are owned by the enrichment pipeline; details_fetched=True
    with posted_date=None means "detail page had no date" and is terminal.
    """

    id: str
    title: str = ""
    salary: str = ""
    location: str = ""
    job_type: str = ""
    category: str = ""
    experience_level: str = ""
    agency: str = ""
    description: str = ""
    url: str = ""
    posted_date: str | None = None
    details_fetched: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys jobs.json uses; unset enrichment keys are omitted."""
        out: dict[str, Any] = {"id": self.id}
        for attr, key in _CORE_KEYS.items():
            out[key] = getattr(self, attr)
        if self.posted_date is not None:
            out["postedDate"] = self.posted_date
        if self.details_fetched:
            out["detailsFetched"] = True
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Listing:
        kwargs: dict[str, Any] = {"id": str(data.get("id") or "")}
        for attr, key in _CORE_KEYS.items():
            kwargs[attr] = str(data.get(key) or "")
        posted = data.get("postedDate")
        kwargs["posted_date"] = str(posted) if posted else None
        kwargs["details_fetched"] = bool(data.get("detailsFetched"))
        return cls(**kwargs)


@dataclass
class ListingPage:
    """One page of the public listing as returned by a listing fetcher."""

    listings: list[Listing] = field(default_factory=list)
    total_pages: int = 1


@dataclass
class StoreSnapshot:
    listings: list[Listing] = field(default_factory=list)
    last_scan: str | None = None


@dataclass(frozen=True)
class ScanProgress:
    current_page: int = 0
    total_pages: int = 0
    jobs_scanned: int = 0
    estimated_seconds_remaining: int | None = None


@dataclass(frozen=True)
class EnrichProgress:
    processed: int = 0
    total: int = 0
