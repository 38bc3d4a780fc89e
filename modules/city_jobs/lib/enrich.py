"""
Posted-date enrichment pipeline.

Walks the listings that still lack details, one detail page at a time with a
randomized pause in between, and commits the full collection every
`batch_size` listings so a crash loses at most one batch of work.
"""

from __future__ import annotations

import dataclasses
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

from . import logging_bridge
from .models import Listing
from .utils import DelayPolicy

ProgressCallback = Callable[[int, int], None]
BatchCallback = Callable[[list[Listing]], None]


def enrich_listings(
    listings: Sequence[Listing],
    fetch_detail: Callable[[str], str | None],
    commit: Callable[[list[Listing]], Any],
    *,
    batch_size: int = 10,
    delay: DelayPolicy | None = None,
    on_progress: ProgressCallback | None = None,
    on_batch_committed: BatchCallback | None = None,
    cancel_event: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
) -> list[Listing]:
    """
    Fetch posted dates for every listing whose details_fetched is falsy.

    Args:
        listings: Full collection; enriched listings pass through untouched.
        fetch_detail: url -> posted date or None. Raising leaves the listing
            unenriched so the next run retries it.
        commit: Persists the entire current collection (e.g. RecordStore.write_all).
            Failures are logged and processing continues.
        batch_size: Commit after this many processed listings, and after the last one.
        delay: Pause drawn before each fetch except the first.
        on_progress: Called with (processed, total) after every listing.
        on_batch_committed: Called with the full collection after every successful commit.
        cancel_event: When set, stop before the next listing and flush pending work.
        sleep: Override for the pause (tests). Defaults to an interruptible wait
            on cancel_event, or time.sleep without one.

    Returns:
        The full collection with enrichment applied.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be >= 1")
    delay = delay or DelayPolicy()

    updated = list(listings)
    todo = [i for i, item in enumerate(updated) if not item.details_fetched]
    total = len(todo)

    logging_bridge.activity({
        "component": "city_jobs.enrich",
        "op": "start",
        "to_process": total,
        "already_enriched": len(updated) - total,
        "batch_size": batch_size,
    })

    processed = 0
    pending = 0
    failures = 0
    commits = 0
    cancelled = False

    def _commit() -> bool:
        snapshot = list(updated)
        try:
            commit(snapshot)
        except Exception as e:
            logging_bridge.error({
                "component": "city_jobs.enrich",
                "op": "batch_commit",
                "processed": processed,
                "total": total,
                "error": repr(e),
            })
            return False
        if on_batch_committed:
            on_batch_committed(snapshot)
        return True

    for n, idx in enumerate(todo):
        if cancel_event is not None and cancel_event.is_set():
            cancelled = True
            break
        if n > 0 and _pause(delay, sleep, cancel_event):
            cancelled = True
            break

        item = updated[idx]
        try:
            posted = fetch_detail(item.url)
        except Exception as e:
            failures += 1
            logging_bridge.error({
                "component": "city_jobs.enrich",
                "op": "fetch_detail",
                "job_id": item.id,
                "url": item.url,
                "error": repr(e),
            })
        else:
            updated[idx] = dataclasses.replace(item, posted_date=posted or None, details_fetched=True)

        processed += 1
        pending += 1
        if on_progress:
            on_progress(processed, total)

        if pending >= batch_size or processed == total:
            if _commit():
                commits += 1
                pending = 0

    # Cancelled mid-batch, or the last commit failed: one more attempt.
    if pending and _commit():
        commits += 1
        pending = 0

    logging_bridge.activity({
        "component": "city_jobs.enrich",
        "op": "cancelled" if cancelled else "done",
        "processed": processed,
        "total": total,
        "failures": failures,
        "commits": commits,
        "uncommitted": pending,
    })
    return updated


def _pause(
    delay: DelayPolicy,
    sleep: Callable[[float], None] | None,
    cancel_event: threading.Event | None,
) -> bool:
    """Sleep for one drawn delay. Returns True if cancellation arrived meanwhile."""
    seconds = delay.draw()
    if seconds <= 0:
        return False
    if sleep is not None:
        sleep(seconds)
        return cancel_event is not None and cancel_event.is_set()
    if cancel_event is not None:
        return cancel_event.wait(seconds)
    time.sleep(seconds)
    return False
