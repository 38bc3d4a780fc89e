# modules/city_jobs/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, Settings, SourceConfig
from .engine import SyncEngine, SyncResult
from .http_client import FetchError
from .merge import merge_preserving_details
from .models import EnrichProgress, Listing, ListingPage, ScanProgress, StoreSnapshot
from .state import SyncPhase, SyncState, ViewState
from .store import RecordStore, StoreError, StoreValidationError

__all__ = [
    "ConfigError",
    "EnrichProgress",
    "FetchError",
    "Listing",
    "ListingPage",
    "RecordStore",
    "ScanProgress",
    "Settings",
    "SourceConfig",
    "StoreError",
    "StoreSnapshot",
    "StoreValidationError",
    "SyncEngine",
    "SyncPhase",
    "SyncResult",
    "SyncState",
    "ViewState",
    "merge_preserving_details",
]
