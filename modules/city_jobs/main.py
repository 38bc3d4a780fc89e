from __future__ import annotations

from typing import Any

from .lib.config import Settings
from .lib.engine import SyncEngine
from .lib.logging_bridge import activity as log_activity

_ACTIONS = ("rescan", "load", "reset_details")


def run(action: str = "rescan", *, wait: bool = True, **kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'city_jobs' module (CLI and scheduler both call this).

    Args:
      action: "rescan" | "load" | "reset_details"
      wait: block until background enrichment finishes; when False the
            pipeline is stopped on exit after flushing what it already fetched
      **kwargs: Settings keys, e.g. data_dir, source_kind, page_size, debug_mode

    Returns:
      A small summary dict: {"action", "ok", "total_jobs", "last_scan", "error", "enriched"}.
    """
    if action not in _ACTIONS:
        raise ValueError(f"Unknown action {action!r}; expected one of {_ACTIONS}")

    settings = Settings.from_env_and_kwargs(kwargs)

    log_activity({
        "component": "city_jobs.main",
        "op": "start",
        "action": action,
        "source": settings.source.kind,
        "data_dir": settings.data_dir,
        "debug_mode": settings.debug_mode,
    })

    with SyncEngine(settings) as engine:
        if action == "reset_details":
            cleared = engine.reset_details()
            view = engine.state.snapshot()
            return {
                "action": action,
                "ok": True,
                "total_jobs": len(cleared),
                "last_scan": view.last_scan,
                "error": None,
                "enriched": 0,
            }

        result = engine.rescan() if action == "rescan" else engine.load_stored()

        enriched = 0
        if wait and result.enrichment is not None:
            final = result.enrichment.result()
            enriched = sum(1 for item in final if item.details_fetched)

        view = engine.state.snapshot()
        return {
            "action": action,
            "ok": result.ok,
            "total_jobs": result.total_jobs,
            "last_scan": view.last_scan or result.last_scan,
            "error": result.error,
            "enriched": enriched,
        }
