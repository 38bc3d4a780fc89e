# modules/city_jobs/lib/sources/__init__.py
from __future__ import annotations

# Importing the concrete sources registers them by kind.
from . import cityjobs as _cityjobs  # noqa: F401
from . import stub as _stub  # noqa: F401
from .base import BaseSource
from .registry import all_kinds, create, get, register

__all__ = ["BaseSource", "all_kinds", "create", "get", "register"]
