from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..models import ListingPage

if TYPE_CHECKING:
    from ..config import Settings


class BaseSource(ABC):
    """
    Abstract listing + detail source.

    Contract:
      - fetch_page(page, page_size) returns one 1-based page of listings and the
        site-reported total page count; raises FetchError on transport failure.
      - fetch_detail(url) returns the posted date for one listing, or None when
        the detail page has none; raises FetchError when the page can't be read.
      - Do NOT touch the record store or sleep for rate limiting; pacing is the
        caller's job.
    """

    # Concrete subclasses MUST set this to a stable string, e.g. "cityjobs", "stub"
    kind: str = ""

    @classmethod
    @abstractmethod
    def from_settings(cls, settings: Settings) -> BaseSource:
        raise NotImplementedError

    @abstractmethod
    def fetch_page(self, page: int, page_size: int) -> ListingPage:
        raise NotImplementedError

    @abstractmethod
    def fetch_detail(self, url: str) -> str | None:
        raise NotImplementedError

    def close(self) -> None:
        """Release network resources; default is a no-op."""
