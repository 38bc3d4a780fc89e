# service/config_schema.py
from __future__ import annotations

import json
import logging
import os
from typing import Any

import yaml

from modules.city_jobs.lib.config import ConfigError as SettingsError
from modules.city_jobs.lib.config import Settings

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the config file is invalid."""


_TRIGGER_FIELDS = ("interval", "cron")


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load the service configuration.

    Resolution order:
      1) Explicit `path` argument (if provided)
      2) os.environ['CONFIG_PATH'] (if set)
      3) Internal default (no settings overrides, no schedule)

    File shape (YAML or JSON):
        timezone: "America/New_York"     # optional, for the scheduler
        settings:                        # optional, Settings kwargs
          data_dir: ./data
          debug_mode: false
        schedule:                        # optional, used by `serve`
          interval: {hours: 6}           # or cron: {hour: 3, minute: 0} / "0 3 * * *"
    """
    resolved_path = path or os.environ.get("CONFIG_PATH")
    if not resolved_path:
        logger.info("CONFIG_PATH not provided; using empty default config.")
        cfg: dict[str, Any] = {}
    else:
        cfg = _read_any(resolved_path)

    _apply_top_level_defaults(cfg)
    return cfg


def validate(cfg: dict[str, Any]) -> Settings:
    """
    Validate the configuration. Raise ConfigError on any problem.
    Returns the Settings the `settings` block resolves to.
    """
    if not isinstance(cfg, dict):
        raise ConfigError("Config must be a dict.")

    tz = cfg.get("timezone")
    if tz is not None and not isinstance(tz, str):
        raise ConfigError("'timezone' must be a string if provided.")

    block = cfg.get("settings")
    if not isinstance(block, dict):
        raise ConfigError("'settings' must be an object.")
    try:
        settings = Settings.from_env_and_kwargs(block)
    except SettingsError as e:
        raise ConfigError(f"settings: {e}") from e

    schedule = cfg.get("schedule")
    if schedule is not None:
        if not isinstance(schedule, dict):
            raise ConfigError("'schedule' must be an object when present.")
        present = [k for k in _TRIGGER_FIELDS if schedule.get(k) is not None]
        if len(present) != 1:
            raise ConfigError("'schedule' needs exactly one of 'interval' or 'cron'.")

    return settings


# ---- Internals ---------------------------------------------------------------


def _read_any(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e

    try:
        if path.endswith((".yml", ".yaml")):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Config file is not valid {'YAML' if path.endswith(('.yml', '.yaml')) else 'JSON'}: {path}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must hold an object at top level: {path}")
    return data


def _apply_top_level_defaults(cfg: dict[str, Any]) -> None:
    cfg.setdefault("settings", {})
    cfg.setdefault("schedule", None)
    if cfg.get("settings") is None:
        cfg["settings"] = {}
