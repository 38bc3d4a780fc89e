"""
Sync engine: full rescans, startup loads, detail resets, and the background
posted-date enrichment they kick off.

Features:
  - Rescan: read merge baseline -> paginate the site -> merge -> persist
  - Background enrichment on a single worker thread, returned as a Future
  - Cancellation of an in-flight enrichment before a new rescan writes
  - Advisory store lock around the rescan read-modify-write section
  - Structured logging via `logging_bridge`
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass

from . import logging_bridge, sources
from .config import Settings
from .enrich import enrich_listings
from .merge import merge_preserving_details, needing_details, reset_details
from .models import Listing, ScanProgress
from .sources.base import BaseSource
from .state import SyncPhase, SyncState
from .store import RecordStore
from .utils import page_count


@dataclass
class SyncResult:
    """
    Outcome of a foreground operation (rescan or load).

    `enrichment` is the background Future when one was launched; callers may
    wait on it or ignore it.
    """

    ok: bool
    total_jobs: int = 0
    last_scan: str | None = None
    error: str | None = None
    enrichment: Future | None = None


class SyncEngine:
    """
    Single-writer orchestrator over a RecordStore and a listing/detail source.

    All state a caller may want to display lives in `self.state` (a SyncState);
    nothing here is module-global, so several engines can coexist in tests.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: RecordStore | None = None,
        source: BaseSource | None = None,
        state: SyncState | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.settings = settings
        self.store = store or RecordStore(settings.data_dir)
        self.source = source or sources.create(settings)
        self.state = state or SyncState(page_size=settings.effective_page_size())
        self._sleep = sleep
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="city-jobs-enrich")
        self._enrichment: Future | None = None
        self._cancel: threading.Event | None = None

    # =========================================================================
    # RESCAN
    # =========================================================================
    def rescan(self) -> SyncResult:
        """
        Refetch every listing page, merge against the stored collection, persist.

        Returns as soon as the merged set is written; enrichment of listings
        without details continues in the background (see SyncResult.enrichment).
        Any failure before the write leaves the store untouched.
        """
        start_ns = time.perf_counter_ns()

        # A leftover pipeline must not write over this rescan.
        self.cancel_enrichment(wait=True)
        self.state.begin_scan()

        try:
            with self.store.lock:
                baseline = self.store.read_all().listings
                fresh = self.scan_all(on_progress=self.state.set_scan_progress)

                self.state.set_phase(SyncPhase.MERGING)
                merged = merge_preserving_details(fresh, baseline)

                last_scan = self.store.write_all(merged)
        except Exception as e:
            message = str(e) or "An error occurred while rescanning jobs"
            logging_bridge.error({
                "component": "city_jobs.engine",
                "op": "rescan",
                "error": repr(e),
            })
            self.state.fail(message)
            return SyncResult(ok=False, error=message)

        self._show_first_page(merged, last_scan, phase=SyncPhase.PERSISTED)

        preserved = sum(1 for item in merged if item.details_fetched)
        logging_bridge.activity({
            "component": "city_jobs.engine",
            "op": "rescan",
            "baseline": len(baseline),
            "scanned": len(fresh),
            "merged": len(merged),
            "details_preserved": preserved,
            "dropped": len({b.id for b in baseline} - {m.id for m in merged}),
            "last_scan": last_scan,
            "total_us": int((time.perf_counter_ns() - start_ns) // 1000),
        })

        future = None
        if needing_details(merged):
            future = self.start_enrichment()
        if future is None:
            self.state.set_phase(SyncPhase.IDLE)

        return SyncResult(ok=True, total_jobs=len(merged), last_scan=last_scan, enrichment=future)

    def scan_all(self, on_progress: Callable[[ScanProgress], None] | None = None) -> list[Listing]:
        """
        Fetch pages 1..N sequentially; N comes from the first page (capped in debug mode).
        Raises on the first failing page.
        """
        page_size = self.settings.effective_page_size()
        per_page_s = self.settings.seconds_per_page_estimate
        sleep = self._sleep or time.sleep

        first = self.source.fetch_page(1, page_size)
        total_pages = self.settings.limit_pages(max(first.total_pages, 1))
        collected: list[Listing] = list(first.listings)

        def _report(page: int) -> None:
            if on_progress:
                on_progress(ScanProgress(
                    current_page=page,
                    total_pages=total_pages,
                    jobs_scanned=len(collected),
                    estimated_seconds_remaining=(total_pages - page) * per_page_s,
                ))

        _report(1)
        for page in range(2, total_pages + 1):
            self.settings.page_delay.pause(sleep)
            result = self.source.fetch_page(page, page_size)
            collected.extend(result.listings)
            _report(page)

        logging_bridge.activity({
            "component": "city_jobs.engine",
            "op": "scan",
            "pages": total_pages,
            "page_size": page_size,
            "jobs_scanned": len(collected),
        })
        return collected

    # =========================================================================
    # LOAD / RESET / PAGINATION
    # =========================================================================
    def load_stored(self) -> SyncResult:
        """
        Show page 1 of the stored collection; if anything still lacks details,
        start enrichment on a freshly re-read copy of the store.
        """
        self.state.begin_load()
        try:
            snap = self.store.read_all()
        except Exception as e:
            message = str(e) or "An error occurred while loading jobs"
            logging_bridge.error({"component": "city_jobs.engine", "op": "load", "error": repr(e)})
            self.state.fail(message)
            return SyncResult(ok=False, error=message)

        self._show_first_page(snap.listings, snap.last_scan, phase=SyncPhase.IDLE)

        future = None
        if needing_details(snap.listings):
            future = self.start_enrichment()
        return SyncResult(ok=True, total_jobs=len(snap.listings), last_scan=snap.last_scan, enrichment=future)

    def reset_details(self) -> list[Listing]:
        """
        Clear posted_date/details_fetched on every stored listing and persist,
        so the next load or rescan re-enriches everything.
        """
        self.cancel_enrichment(wait=True)
        self.state.begin_load()
        try:
            with self.store.lock:
                cleared = reset_details(self.store.read_all().listings)
                last_scan = self.store.write_all(cleared)
        except Exception as e:
            logging_bridge.error({"component": "city_jobs.engine", "op": "reset_details", "error": repr(e)})
            self.state.fail(str(e) or "An error occurred while resetting job details")
            raise

        self.state.show(
            cleared,
            page=self.state.current_page,
            total_pages=self._total_pages(len(cleared)),
            last_scan=last_scan,
        )
        logging_bridge.activity({"component": "city_jobs.engine", "op": "reset_details", "count": len(cleared)})
        return cleared

    def set_page(self, page: int) -> list[Listing]:
        """Display a 1-based page of the stored collection and return its listings."""
        listings = self.store.read_all().listings
        self.state.show(listings, page=max(page, 1), total_pages=self._total_pages(len(listings)))
        return list(self.state.snapshot().listings)

    # =========================================================================
    # BACKGROUND ENRICHMENT
    # =========================================================================
    def start_enrichment(self) -> Future | None:
        """
        Launch the enrichment pipeline on the worker thread.

        Re-reads the store first so the pipeline starts from what was actually
        persisted. Returns the running Future (an already-running one is reused),
        or None when nothing needs details.
        """
        if self._enrichment is not None and not self._enrichment.done():
            return self._enrichment

        latest = self.store.read_all().listings
        todo = needing_details(latest)
        if not todo:
            return None

        cancel = threading.Event()
        self.state.start_enrichment(total=len(todo))
        self._cancel = cancel
        self._enrichment = self._executor.submit(self._run_enrichment, latest, cancel)
        return self._enrichment

    def cancel_enrichment(self, *, wait: bool = True, timeout: float | None = None) -> None:
        """Signal an in-flight pipeline to stop (it flushes pending work first)."""
        if self._cancel is not None:
            self._cancel.set()
        if wait and self._enrichment is not None:
            wait_futures([self._enrichment], timeout=timeout)

    def wait_for_enrichment(self, timeout: float | None = None) -> list[Listing] | None:
        """Block until the current pipeline finishes; returns its result, or None if none ran."""
        if self._enrichment is None:
            return None
        return self._enrichment.result(timeout=timeout)

    def close(self) -> None:
        self.cancel_enrichment(wait=True)
        self._executor.shutdown(wait=True)
        self.source.close()

    def __enter__(self) -> SyncEngine:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- internals ----
    def _run_enrichment(self, listings: list[Listing], cancel: threading.Event) -> list[Listing]:
        try:
            return enrich_listings(
                listings,
                self.source.fetch_detail,
                self.store.write_all,
                batch_size=self.settings.batch_size,
                delay=self.settings.detail_delay,
                on_progress=self.state.set_enrich_progress,
                on_batch_committed=self.state.refresh_page,
                cancel_event=cancel,
                sleep=self._sleep,
            )
        except Exception as e:
            # Background failures never reach the rescan caller; log and re-raise into the Future.
            logging_bridge.error({"component": "city_jobs.engine", "op": "enrichment", "error": repr(e)})
            raise
        finally:
            self.state.finish_enrichment(last_scan=self.store.last_scan())

    def _total_pages(self, total_jobs: int) -> int:
        return self.settings.limit_pages(page_count(total_jobs, self.settings.effective_page_size()))

    def _show_first_page(self, listings: list[Listing], last_scan: str | None, *, phase: SyncPhase) -> None:
        self.state.show(
            listings,
            page=1,
            total_pages=self._total_pages(len(listings)),
            last_scan=last_scan,
            phase=phase,
        )
