# service/cli.py
"""
User-facing command-line entrypoints.

Subcommands
-----------
rescan [--no-wait]
    - Refetches every listing page, merges with the store, persists
    - Then enriches posted dates (waits unless --no-wait)

load [--no-wait]
    - Shows the stored collection and enriches anything still missing details

reset-details
    - Clears posted dates / detailsFetched on every stored listing

show [--page N]
    - Prints one page of the stored collection

serve
    - Runs periodic rescans via service.scheduler.start() until SIGINT/SIGTERM

validate-config
    - Loads/validates config and returns nonzero on error
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
from collections.abc import Iterable, Sequence
from typing import Any

from modules.city_jobs.lib import logging_bridge
from modules.city_jobs.lib.config import Settings
from modules.city_jobs.lib.engine import SyncEngine
from modules.city_jobs.main import run as run_city_jobs
from service import config_schema as _config_schema
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--set item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --set item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


def _print_table(rows: Sequence[Sequence[str]], headers: Sequence[str]) -> None:
    """Very simple fixed-width table printer."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    sep = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

    def _line(cells: Sequence[str]) -> str:
        return "| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |"

    print(sep)
    print(_line(headers))
    print(sep)
    for row in rows:
        print(_line(row))
    print(sep)


def _clip(s: str, n: int) -> str:
    return s if len(s) <= n else s[: n - 1] + "…"


def _settings_kwargs(args: argparse.Namespace) -> dict[str, Any]:
    """Config-file `settings` block, overridden by global flags, overridden by --set."""
    cfg = _config_schema.load_config(args.config)
    kwargs: dict[str, Any] = dict(cfg.get("settings") or {})
    if args.data_dir:
        kwargs["data_dir"] = args.data_dir
    if args.source:
        kwargs["source_kind"] = args.source
    if args.debug:
        kwargs["debug_mode"] = True
    kwargs.update(_parse_kv_pairs(args.set or []))
    return kwargs


def _print_summary(summary: dict[str, Any]) -> int:
    if not summary.get("ok"):
        print(f"FAILURE: {summary.get('error')}", file=sys.stderr)
        return 1
    print(
        f"DONE: {summary['action']}: {summary['total_jobs']} jobs stored, "
        f"{summary['enriched']} with details; last scan {summary.get('last_scan') or 'never'}."
    )
    return 0


# ------------------------------ Subcommands ----------------------------------
def cmd_rescan(args: argparse.Namespace) -> int:
    return _run_action("rescan", args)


def cmd_load(args: argparse.Namespace) -> int:
    return _run_action("load", args)


def cmd_reset_details(args: argparse.Namespace) -> int:
    return _run_action("reset_details", args)


def _run_action(action: str, args: argparse.Namespace) -> int:
    try:
        summary = run_city_jobs(action, wait=not getattr(args, "no_wait", False), **_settings_kwargs(args))
        return _print_summary(summary)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        LOG.exception("%s failed: %s", action, e)
        print(f"FAILURE: {e}", file=sys.stderr)
        return 1


def cmd_show(args: argparse.Namespace) -> int:
    try:
        settings = Settings.from_env_and_kwargs(_settings_kwargs(args))
        with SyncEngine(settings) as engine:
            listings = engine.set_page(args.page)
            view = engine.state.snapshot()
    except Exception as e:
        LOG.exception("show failed: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if not listings:
        print("No jobs stored for this page. Run `rescan` first.")
        return 0
    rows = [
        (item.id, _clip(item.title, 50), _clip(item.agency, 30), item.salary, item.posted_date or "-")
        for item in listings
    ]
    _print_table(rows, headers=("ID", "TITLE", "AGENCY", "SALARY", "POSTED"))
    print(
        f"Page {view.current_page}/{view.total_pages} · {view.total_jobs} jobs · "
        f"last scan {view.last_scan or 'never'}"
    )
    return 0


def cmd_validate_config(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
        _config_schema.validate(cfg)
        print("OK: configuration is valid.")
        return 0
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        LOG.exception("Configuration validation failed: %s", e)
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run scheduled rescans until a termination signal is received.
    """
    stop_event = threading.Event()

    def _graceful_shutdown(signum=None, frame=None):
        LOG.info("Signal %s received; initiating shutdown...", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _graceful_shutdown)

    try:
        cfg = _config_schema.load_config(args.config)
        cfg["settings"] = _settings_kwargs(args)
        controller = _scheduler.start(cfg=cfg)
    except Exception as e:
        LOG.exception("Fatal error in serve: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    logging_bridge.activity({"component": "service.cli", "op": "serve_start", "jobs": list(controller.get_job_ids())})
    while not stop_event.wait(0.3):
        pass

    controller.stop()
    controller.join(timeout=10.0)
    logging_bridge.activity({"component": "service.cli", "op": "serve_stop"})
    return 0


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Scrape, store and enrich NYC city job listings.",
    )
    p.add_argument("--config", help="Path to YAML/JSON config (fallbacks to CONFIG_PATH env).")
    p.add_argument("--data-dir", help="Directory holding jobs.json / metadata.json.")
    p.add_argument("--source", help="Source kind: 'cityjobs' (live) or 'stub'.")
    p.add_argument("--debug", action="store_true", help="Debug mode: 2 pages of 12 jobs.")
    p.add_argument(
        "--set",
        metavar="k=v",
        action="append",
        help="Extra Settings override (JSON values supported), repeatable, e.g. --set batch_size=5.",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("rescan", help="Rescan every listing page, merge and persist.")
    sp.add_argument("--no-wait", action="store_true", help="Stop after the merge is persisted.")
    sp.set_defaults(func=cmd_rescan)

    sp = sub.add_parser("load", help="Load stored jobs and enrich missing posted dates.")
    sp.add_argument("--no-wait", action="store_true", help="Do not wait for enrichment.")
    sp.set_defaults(func=cmd_load)

    sp = sub.add_parser("reset-details", help="Clear posted dates so they are fetched again.")
    sp.set_defaults(func=cmd_reset_details)

    sp = sub.add_parser("show", help="Print one page of stored jobs.")
    sp.add_argument("--page", type=int, default=1)
    sp.set_defaults(func=cmd_show)

    sp = sub.add_parser("serve", help="Run scheduled rescans from the config's schedule block.")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
