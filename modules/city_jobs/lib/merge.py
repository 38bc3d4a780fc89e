from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from .models import Listing


def merge_preserving_details(fresh: Iterable[Listing], stored: Iterable[Listing]) -> list[Listing]:
    """
    Reconcile a fresh full scrape against the stored collection.

    - Result membership and order are exactly the fresh scrape's.
    - A fresh listing whose stored twin (same id) has details_fetched=True keeps
      the stored posted_date/details_fetched on top of the fresh core fields.
    - Everything else is the fresh listing as-is; stored-only listings are dropped.
    """
    by_id = {item.id: item for item in stored}

    out: list[Listing] = []
    for item in fresh:
        prev = by_id.get(item.id)
        if prev is not None and prev.details_fetched:
            item = dataclasses.replace(
                item,
                posted_date=prev.posted_date,
                details_fetched=prev.details_fetched,
            )
        out.append(item)
    return out


def reset_details(listings: Iterable[Listing]) -> list[Listing]:
    """Clear posted_date and details_fetched on every listing."""
    return [dataclasses.replace(item, posted_date=None, details_fetched=False) for item in listings]


def needing_details(listings: Iterable[Listing]) -> list[Listing]:
    return [item for item in listings if not item.details_fetched]
