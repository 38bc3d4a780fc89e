"""
HTML extraction for the cityjobs.nyc.gov (Attrax) listing and detail pages.

All functions are pure and best-effort: missing elements produce empty
strings, an empty list, page count 1, or None instead of raising.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib

from .models import Listing
from .utils import page_count

_TILE = ".attrax-vacancy-tile"
_VALUE = ".attrax-vacancy-tile__item-value"

# Listing field -> CSS selector inside a tile
_FIELD_SELECTORS = {
    "salary": ".attrax-vacancy-tile__salary-value",
    "location": f".attrax-vacancy-tile__location-freetext {_VALUE}",
    "job_type": f".attrax-vacancy-tile__option-job-type {_VALUE}",
    "category": f".attrax-vacancy-tile__option-category {_VALUE}",
    "experience_level": f".attrax-vacancy-tile__option-experience-level {_VALUE}",
    "agency": f".attrax-vacancy-tile__option-agency {_VALUE}",
    "description": ".attrax-vacancy-tile__description-value",
}

_POSTED_LABEL = "Posted on:"
_DIGITS_RE = re.compile(r"(\d[\d,]*)")


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html5lib")


def _text(el) -> str:
    return el.get_text(strip=True) if el is not None else ""


def parse_listings(html: str) -> list[Listing]:
    """Return one Listing per vacancy tile, in page order."""
    soup = _soup(html)
    out: list[Listing] = []

    for tile in soup.select(_TILE):
        title_el = tile.select_one(".attrax-vacancy-tile__title")
        fields = {name: _text(tile.select_one(sel)) for name, sel in _FIELD_SELECTORS.items()}
        out.append(
            Listing(
                id=(tile.get("data-jobid") or "").strip(),
                title=_text(title_el),
                url=((title_el.get("href") if title_el is not None else "") or "").strip(),
                **fields,
            )
        )
    return out


def total_pages(html: str, page_size: int = 48) -> int:
    """
    Derive the page count from the "4080 results" counter.
    Falls back to 1 when the counter is missing or unreadable.
    """
    soup = _soup(html)
    el = soup.select_one(".attrax-pagination__total-results")
    if el is None:
        return 1
    m = _DIGITS_RE.search(_text(el))
    if not m:
        return 1
    try:
        total = int(m.group(1).replace(",", ""))
    except ValueError:
        return 1
    return max(page_count(total, page_size), 1)


def parse_posted_date(html: str) -> str | None:
    """
    Find the "Posted on:" date widget on a detail page and return its text
    (e.g. "03/01/2024"), or None when the page carries no posted date.
    """
    soup = _soup(html)
    for widget in soup.select(".date-widget"):
        label = widget.select_one(".date-label")
        if label is None or label.get_text(strip=True) != _POSTED_LABEL:
            continue
        text = widget.get_text(" ", strip=True).replace(_POSTED_LABEL, "", 1).strip()
        return text or None
    return None
