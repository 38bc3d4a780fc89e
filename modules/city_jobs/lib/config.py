from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .utils import DelayPolicy, truthy

_ENV_PREFIX = "CITY_JOBS_"

DEFAULT_BASE_URL = "https://cityjobs.nyc.gov"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)
DEFAULT_PAGE_DELAY = DelayPolicy(0.3, 1.3)
DEFAULT_DETAIL_DELAY = DelayPolicy(1.0, 3.0)


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class SourceConfig:
    """
    Which listing/detail source to use.
    - kind: registered source family ("cityjobs" for the live site, "stub" for zero-network runs)
    - params: arbitrary dict handed to the source constructor
    """

    kind: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class Settings:
    """
    Canonical configuration for the city_jobs sync engine.

    Every value can come from kwargs (CLI/config file) or from a CITY_JOBS_*
    environment variable; kwargs win.
    """

    # Storage
    data_dir: str = "data"

    # Source selection
    source: SourceConfig = field(default_factory=lambda: SourceConfig(kind="cityjobs"))
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT

    # Paging (debug mode mirrors the site UI's reduced "2 pages of 12" mode)
    page_size: int = 48
    debug_mode: bool = False
    debug_page_size: int = 12
    debug_max_pages: int = 2

    # Enrichment
    batch_size: int = 10

    # Rate limiting
    page_delay: DelayPolicy = DEFAULT_PAGE_DELAY
    detail_delay: DelayPolicy = DEFAULT_DETAIL_DELAY
    seconds_per_page_estimate: int = 3

    # HTTP
    timeout_seconds: float = 20.0
    max_attempts: int = 3
    backoff_factor: float = 1.0

    # ------------- convenience -------------
    def effective_page_size(self) -> int:
        return self.debug_page_size if self.debug_mode else self.page_size

    def limit_pages(self, total_pages: int) -> int:
        if self.debug_mode:
            return min(total_pages, self.debug_max_pages)
        return total_pages

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None = None) -> Settings:
        """
        Build Settings from kwargs with env fallback and validation.

        Expected kwargs (all optional):

            data_dir: str = "data"
            source_kind: str = "cityjobs"      # or "stub"
            source_params: dict = {}
            base_url: str
            user_agent: str
            page_size: int = 48
            debug_mode: bool = false
            debug_page_size: int = 12
            debug_max_pages: int = 2
            batch_size: int = 10
            page_delay: [min, max] | "min-max" = [0.3, 1.3]
            detail_delay: [min, max] | "min-max" = [1.0, 3.0]
            seconds_per_page_estimate: int = 3
            timeout_seconds: float = 20
            max_attempts: int = 3
            backoff_factor: float = 1.0
        """
        kw = dict(kwargs or {})

        def pick(name: str) -> Any:
            if kw.get(name) is not None:
                return kw[name]
            return os.getenv(_ENV_PREFIX + name.upper())

        try:
            source_params = kw.get("source_params") or {}
            if not isinstance(source_params, dict):
                raise ConfigError("'source_params' must be an object.")

            settings = cls(
                data_dir=str(pick("data_dir") or "data"),
                source=SourceConfig(
                    kind=str(pick("source_kind") or "cityjobs").strip().lower(),
                    params=dict(source_params),
                ),
                base_url=str(pick("base_url") or DEFAULT_BASE_URL).rstrip("/"),
                user_agent=str(pick("user_agent") or DEFAULT_USER_AGENT),
                page_size=int(_or_default(pick("page_size"), 48)),
                debug_mode=truthy(pick("debug_mode")),
                debug_page_size=int(_or_default(pick("debug_page_size"), 12)),
                debug_max_pages=int(_or_default(pick("debug_max_pages"), 2)),
                batch_size=int(_or_default(pick("batch_size"), 10)),
                page_delay=DelayPolicy.parse(pick("page_delay"), DEFAULT_PAGE_DELAY),
                detail_delay=DelayPolicy.parse(pick("detail_delay"), DEFAULT_DETAIL_DELAY),
                seconds_per_page_estimate=int(_or_default(pick("seconds_per_page_estimate"), 3)),
                timeout_seconds=float(_or_default(pick("timeout_seconds"), 20.0)),
                max_attempts=int(_or_default(pick("max_attempts"), 3)),
                backoff_factor=float(_or_default(pick("backoff_factor"), 1.0)),
            )
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid city_jobs setting: {e}") from e

        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _or_default(value: Any, default: Any) -> Any:
    return default if value is None or value == "" else value


def _validate_settings(s: Settings) -> None:
    if not s.data_dir.strip():
        raise ConfigError("'data_dir' cannot be empty.")
    if not s.source.kind:
        raise ConfigError("'source_kind' cannot be empty.")
    if not s.base_url.startswith(("http://", "https://")):
        raise ConfigError("'base_url' must be an http(s) URL.")
    if s.page_size <= 0 or s.debug_page_size <= 0:
        raise ConfigError("Page sizes must be >= 1.")
    if s.debug_max_pages <= 0:
        raise ConfigError("'debug_max_pages' must be >= 1.")
    if s.batch_size <= 0:
        raise ConfigError("'batch_size' must be >= 1.")
    if s.max_attempts <= 0:
        raise ConfigError("'max_attempts' must be >= 1.")
    if s.timeout_seconds <= 0:
        raise ConfigError("'timeout_seconds' must be > 0.")
    if s.seconds_per_page_estimate < 0 or s.backoff_factor < 0:
        raise ConfigError("'seconds_per_page_estimate' and 'backoff_factor' cannot be negative.")
    for name in ("page_delay", "detail_delay"):
        d: DelayPolicy = getattr(s, name)
        if d.min_seconds < 0 or d.max_seconds < d.min_seconds:
            raise ConfigError(f"'{name}' must satisfy 0 <= min <= max.")
