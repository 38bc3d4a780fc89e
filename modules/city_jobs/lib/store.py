from __future__ import annotations

import contextlib
import json
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from .logging_bridge import error as log_error
from .models import Listing, StoreSnapshot
from .utils import now_iso

JOBS_FILE = "jobs.json"
METADATA_FILE = "metadata.json"


class StoreError(Exception):
    """Raised when the store cannot be written."""


class StoreValidationError(StoreError, ValueError):
    """Raised before any I/O when a write payload is not a collection of listings."""


# ---- Public API -------------------------------------------------------------


class RecordStore:
    """
    Flat JSON store: the full listing collection in jobs.json plus
    {"lastScan": ...} in metadata.json, both under `data_dir`.

    Every write replaces the whole collection and stamps a new lastScan.
    `lock` is an advisory re-entrant lock; callers doing read-modify-write
    (rescan, enrichment batch commits) hold it so overlapping runs serialize.
    """

    def __init__(self, data_dir: str) -> None:
        self.data_dir = data_dir
        self.lock = threading.RLock()

    @property
    def jobs_path(self) -> str:
        return os.path.join(self.data_dir, JOBS_FILE)

    @property
    def metadata_path(self) -> str:
        return os.path.join(self.data_dir, METADATA_FILE)

    def read_all(self) -> StoreSnapshot:
        """
        Return every stored listing plus lastScan.
        Missing or unreadable files are an empty store, not an error.
        """
        raw = _read_json(self.jobs_path)
        listings: list[Listing] = []
        if isinstance(raw, list):
            listings = [Listing.from_dict(item) for item in raw if isinstance(item, dict)]
        return StoreSnapshot(listings=listings, last_scan=self.last_scan())

    def last_scan(self) -> str | None:
        meta = _read_json(self.metadata_path)
        if isinstance(meta, dict) and meta.get("lastScan"):
            return str(meta["lastScan"])
        return None

    def write_all(self, listings: Iterable[Listing | Mapping[str, Any]]) -> str:
        """
        Replace the stored collection and stamp a new lastScan.

        If the metadata write fails after jobs.json was replaced, jobs.json is
        put back to its previous content so a failed write leaves both files as they were.

        Returns:
            The new lastScan timestamp (ISO-8601 UTC).
        """
        payload = _validate_payload(listings)

        try:
            with self.lock:
                os.makedirs(self.data_dir, exist_ok=True)
                previous = _read_text(self.jobs_path)
                _atomic_write_json(self.jobs_path, payload)
                last_scan = now_iso()
                try:
                    _atomic_write_json(self.metadata_path, {"lastScan": last_scan})
                except OSError:
                    self._restore_jobs(previous)
                    raise
        except OSError as e:
            log_error({
                "component": "city_jobs.store",
                "op": "write_all",
                "data_dir": self.data_dir,
                "count": len(payload),
                "error": repr(e),
            })
            raise StoreError(f"Failed to store job data in {self.data_dir}: {e}") from e
        return last_scan

    def count(self) -> int:
        return len(self.read_all().listings)

    def _restore_jobs(self, previous: str | None) -> None:
        try:
            if previous is None:
                os.remove(self.jobs_path)
            else:
                _atomic_write_text(self.jobs_path, previous)
        except OSError as e:
            log_error({
                "component": "city_jobs.store",
                "op": "restore_jobs",
                "path": self.jobs_path,
                "error": repr(e),
            })


# ---- Nice-to-have helpers for tests & diagnostics --------------------------


def reset_store(data_dir: str) -> None:
    """
    Remove the store files (for pytest fixtures).
    Safe if they don't exist.
    """
    for name in (JOBS_FILE, METADATA_FILE):
        with contextlib.suppress(FileNotFoundError):
            os.remove(os.path.join(data_dir, name))


# ---- Internal utilities -----------------------------------------------------


def _validate_payload(listings: Any) -> list[dict[str, Any]]:
    if isinstance(listings, (str, bytes, Mapping)) or not isinstance(listings, (list, tuple)):
        raise StoreValidationError("Invalid data format. Expected an array of jobs.")
    out: list[dict[str, Any]] = []
    for i, item in enumerate(listings):
        if isinstance(item, Listing):
            out.append(item.to_dict())
        elif isinstance(item, Mapping) and item.get("id"):
            out.append(Listing.from_dict(dict(item)).to_dict())
        else:
            raise StoreValidationError(f"Item[{i}] is not a job listing.")
    return out


def _read_json(path: str) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        log_error({
            "component": "city_jobs.store",
            "op": "read",
            "path": path,
            "error": repr(e),
        })
        return None


def _read_text(path: str) -> str | None:
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return None


def _atomic_write_json(path: str, data: Any) -> None:
    _atomic_write_text(path, json.dumps(data, indent=2, ensure_ascii=False))


def _atomic_write_text(path: str, text: str) -> None:
    # Write to a sibling temp file, then os.replace so readers never see a torn file.
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=os.path.dirname(path) or ".")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp)
        raise
