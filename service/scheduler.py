# service/scheduler.py
from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from modules.city_jobs.main import run as run_city_jobs

from . import config_schema

LOG = logging.getLogger(__name__)

RESCAN_JOB_ID = "city_jobs.rescan"


# ---- Public controller ------------------------------------------------------


class SchedulerController:
    """
    A small façade around APScheduler so the CLI can manage lifecycle cleanly.
    """

    def __init__(self, scheduler: BackgroundScheduler) -> None:
        self._scheduler = scheduler
        self._stopped_evt = threading.Event()

    def stop(self) -> None:
        """
        Shut down APScheduler; a rescan already in flight is allowed to finish.
        """
        if self._scheduler.running:
            LOG.info("Shutting down scheduler...")
            self._scheduler.shutdown(wait=False)
        self._stopped_evt.set()

    def join(self, timeout: float | None = None) -> bool:
        """
        Block until the scheduler is fully stopped (or timeout).
        Returns True if stopped before timeout, else False.
        """
        return self._stopped_evt.wait(timeout=timeout)

    def get_job_ids(self) -> Iterable[str]:
        return (job.id for job in self._scheduler.get_jobs())


# ---- Module API -------------------------------------------------------------


def start(
    config_path: str | None = None,
    *,
    cfg: dict[str, Any] | None = None,
    job: Callable[..., Any] | None = None,
) -> SchedulerController:
    """
    Build a BackgroundScheduler with one periodic rescan job and start it.

    The job runs `modules.city_jobs.main.run(action="rescan", wait=True, **settings)`
    unless `job` overrides it. max_instances=1 + coalesce keep the store single-writer:
    a trigger that fires while a rescan (and its enrichment) is still running is skipped.
    """
    cfg = cfg if cfg is not None else config_schema.load_config(config_path)
    config_schema.validate(cfg)

    schedule = cfg.get("schedule")
    if not schedule:
        raise config_schema.ConfigError("No 'schedule' block configured; nothing to serve.")

    tz = _resolve_timezone(cfg)
    trigger = _build_trigger(schedule, tz)

    scheduler = BackgroundScheduler(
        timezone=tz,
        job_defaults={"coalesce": True, "max_instances": 1},
        executors={"default": ThreadPoolExecutor(1)},
        jobstores={"default": MemoryJobStore()},
    )
    job_opts: dict[str, Any] = {}
    grace = _int_or(schedule.get("misfire_grace_time"), None)
    if grace is not None:
        job_opts["misfire_grace_time"] = grace

    scheduler.add_job(
        job or run_city_jobs,
        trigger=trigger,
        id=RESCAN_JOB_ID,
        name="City jobs rescan",
        kwargs={"action": "rescan", "wait": True, **dict(cfg.get("settings") or {})},
        replace_existing=True,
        **job_opts,
    )

    scheduler.start()
    nxt = _preview_trigger(trigger, tz, count=3)
    LOG.info("Scheduler started; next rescans at %s", ", ".join(t.isoformat() for t in nxt))
    return SchedulerController(scheduler)


# ---- Helpers ----------------------------------------------------------------


def _preview_trigger(trigger, tz, count: int = 3, start: datetime | None = None) -> list[datetime]:
    """
    Return the next `count` fire times (seeded at `start` or now) for logs.
    """
    now = start or datetime.now(tz=tz)
    prev = now
    times: list[datetime] = []
    for _ in range(count):
        nxt = trigger.get_next_fire_time(prev, now)
        if nxt is None:
            break
        times.append(nxt)
        prev = nxt
        now = nxt + timedelta(microseconds=1)
    return times


def _resolve_timezone(cfg: dict[str, Any]):
    """
    APScheduler 3.x expects a pytz timezone. Accept config['timezone'], env TZ, else UTC.
    """
    tz_name = cfg.get("timezone") or os.getenv("TZ") or "UTC"
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (invalid tz '%s')", tz_name)
        return pytz.UTC


def _build_trigger(trig_def: dict[str, Any], tz) -> IntervalTrigger | CronTrigger:
    """
    Build an APScheduler trigger from the `schedule` block.

    Supported shapes:
      {"interval": {weeks|days|hours|minutes|seconds, jitter?}}
      {"cron":     {second?, minute?, hour?, day?, day_of_week?, month?}}
      {"cron":     "0 */6 * * *"}  # crontab
    """
    if not isinstance(trig_def, dict):
        raise ValueError("schedule must be a dict")

    present = [k for k in ("interval", "cron") if trig_def.get(k) is not None]
    if len(present) != 1:
        raise ValueError("exactly one of {'interval','cron'} must be provided")

    if present[0] == "interval":
        spec = trig_def["interval"]
        if not isinstance(spec, dict):
            raise ValueError("interval must be an object with time fields")
        allowed = {"weeks", "days", "hours", "minutes", "seconds", "jitter"}
        unknown = set(spec) - allowed
        if unknown:
            raise ValueError(f"interval has unknown field(s): {sorted(unknown)}")

        kwargs: dict[str, int] = {}
        for name in sorted(allowed):
            if name not in spec:
                continue
            try:
                v = int(spec[name])
            except (TypeError, ValueError) as err:
                raise ValueError(f"interval.{name} must be an integer") from err
            if v < 0:
                raise ValueError(f"interval.{name} must be >= 0")
            if v:
                kwargs[name] = v
        if not any(kwargs.get(k) for k in ("weeks", "days", "hours", "minutes", "seconds")):
            raise ValueError("interval must be greater than 0 (provide at least one nonzero time field)")
        return IntervalTrigger(timezone=tz, **kwargs)

    spec = trig_def["cron"]
    if isinstance(spec, str):
        return CronTrigger.from_crontab(spec, timezone=tz)
    if not isinstance(spec, dict):
        raise ValueError("cron must be a crontab string or an object of cron fields")
    allowed = {"year", "month", "day", "week", "day_of_week", "hour", "minute", "second", "jitter"}
    unknown = set(spec) - allowed
    if unknown:
        raise ValueError(f"cron has unknown field(s): {sorted(unknown)}")
    return CronTrigger(timezone=tz, **spec)


def _int_or(v: Any, default: int | None) -> int | None:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default
