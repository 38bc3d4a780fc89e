from __future__ import annotations

import copy
import datetime as _dt
import json
import logging
import os
from typing import Any

# Keys scrubbed from structured records before they reach any sink.
_REDACT_KEYS = {
    "authorization",
    "cookie",
    "set-cookie",
    "password",
    "token",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record and redact obvious secret-like fields at top level.
    """
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        if str(k).lower() in _REDACT_KEYS:
            redacted[k] = "***REDACTED***"
    return redacted


def _log_path_for_today(prefix: str) -> str | None:
    """
    JSONL sink path, or None when LOG_DIR is unset (stdlib logging only).
    Read per call so tests can point LOG_DIR at a tmp dir.
    """
    log_dir = os.getenv("LOG_DIR")
    if not log_dir:
        return None
    today = _dt.date.today().isoformat()  # YYYY-MM-DD
    return os.path.join(log_dir, f"{prefix}-{today}.jsonl")


def _write_jsonl(path: str, record: dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    line = json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str) + "\n"
    # Single O_APPEND write keeps lines whole when the enrichment thread logs concurrently.
    fd = os.open(path, os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o644)
    try:
        os.write(fd, line.encode("utf-8"))
    finally:
        os.close(fd)


def _emit(kind: str, record: dict[str, Any], level: int) -> None:
    payload = _redact_record(record)
    logging.getLogger(f"city_jobs.{kind}").log(level, payload)

    prefix = os.getenv("ACTIVITY_LOG_PREFIX", "activity") if kind == "activity" else os.getenv(
        "ERROR_LOG_PREFIX", "error"
    )
    path = _log_path_for_today(prefix)
    if path is None:
        return
    try:
        _write_jsonl(path, payload)
    except OSError:
        logging.getLogger(__name__).warning("Could not append %s record to %s", kind, path, exc_info=True)


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record: stdlib logging at INFO, plus the JSONL file when LOG_DIR is set.
    """
    _emit("activity", record, logging.INFO)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record: stdlib logging at ERROR, plus the JSONL file when LOG_DIR is set.
    """
    _emit("error", record, logging.ERROR)
