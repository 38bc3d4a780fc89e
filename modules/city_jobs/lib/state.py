from __future__ import annotations

import dataclasses
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from .models import EnrichProgress, Listing, ScanProgress
from .utils import paginate


class SyncPhase(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    MERGING = "merging"
    PERSISTED = "persisted"
    ENRICHING = "enriching"


@dataclass(frozen=True)
class ViewState:
    """Immutable snapshot of what a caller (CLI, UI) should display."""

    phase: SyncPhase = SyncPhase.IDLE
    listings: tuple[Listing, ...] = ()
    total_jobs: int = 0
    current_page: int = 1
    total_pages: int = 1
    last_scan: str | None = None
    is_loading: bool = False
    error: str | None = None
    scan_progress: ScanProgress | None = None
    enrich_progress: EnrichProgress | None = None
    page_size: int = field(default=48, repr=False)


class SyncState:
    """
    Process-local state container for the sync engine.

    Every mutation goes through a method and replaces the frozen ViewState
    under a lock, so the background enrichment thread and the foreground
    caller never observe a half-updated view.
    """

    def __init__(self, page_size: int = 48) -> None:
        self._lock = threading.Lock()
        self._view = ViewState(page_size=page_size)

    # ---- reads ----
    def snapshot(self) -> ViewState:
        with self._lock:
            return self._view

    @property
    def phase(self) -> SyncPhase:
        return self.snapshot().phase

    @property
    def current_page(self) -> int:
        return self.snapshot().current_page

    # ---- writes ----
    def _update(self, **changes) -> None:
        with self._lock:
            self._view = dataclasses.replace(self._view, **changes)

    def begin_scan(self) -> None:
        self._update(
            phase=SyncPhase.SCANNING,
            is_loading=True,
            error=None,
            scan_progress=ScanProgress(),
        )

    def begin_load(self) -> None:
        self._update(is_loading=True, error=None)

    def set_phase(self, phase: SyncPhase) -> None:
        self._update(phase=phase)

    def set_scan_progress(self, progress: ScanProgress) -> None:
        self._update(scan_progress=progress)

    def fail(self, message: str) -> None:
        self._update(
            phase=SyncPhase.IDLE,
            is_loading=False,
            error=message,
            scan_progress=None,
            enrich_progress=None,
        )

    def show(
        self,
        all_listings: Sequence[Listing],
        *,
        page: int,
        total_pages: int,
        last_scan: str | None = None,
        phase: SyncPhase | None = None,
    ) -> None:
        """Display `page` of the full collection and finish any foreground loading."""
        with self._lock:
            v = self._view
            self._view = dataclasses.replace(
                v,
                phase=phase or v.phase,
                listings=tuple(paginate(all_listings, page, v.page_size)),
                total_jobs=len(all_listings),
                current_page=page,
                total_pages=total_pages,
                last_scan=last_scan if last_scan is not None else v.last_scan,
                is_loading=False,
                scan_progress=None,
            )

    def refresh_page(self, all_listings: Sequence[Listing]) -> None:
        """Re-slice the current page from a newer collection (after a batch commit)."""
        with self._lock:
            v = self._view
            self._view = dataclasses.replace(
                v,
                listings=tuple(paginate(all_listings, v.current_page, v.page_size)),
                total_jobs=len(all_listings),
            )

    def start_enrichment(self, total: int) -> None:
        self._update(phase=SyncPhase.ENRICHING, enrich_progress=EnrichProgress(0, total))

    def set_enrich_progress(self, processed: int, total: int) -> None:
        self._update(enrich_progress=EnrichProgress(processed, total))

    def finish_enrichment(self, last_scan: str | None) -> None:
        with self._lock:
            v = self._view
            self._view = dataclasses.replace(
                v,
                phase=SyncPhase.IDLE if v.phase is SyncPhase.ENRICHING else v.phase,
                enrich_progress=None,
                last_scan=last_scan if last_scan is not None else v.last_scan,
            )
