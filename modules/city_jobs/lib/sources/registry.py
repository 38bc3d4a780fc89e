from __future__ import annotations

from typing import TYPE_CHECKING

from .base import BaseSource

if TYPE_CHECKING:
    from ..config import Settings

# In-process registry: kind -> source class
_REGISTRY: dict[str, type[BaseSource]] = {}


def register(cls: type[BaseSource]) -> type[BaseSource]:
    """
    Class decorator registering a source under its `kind`.
    Re-registering the same class is a no-op; a different class for a taken kind is rejected.
    """
    key = (getattr(cls, "kind", "") or "").strip().lower()
    if not key:
        raise ValueError(f"Cannot register source {cls!r}: missing/empty 'kind'.")
    if key in _REGISTRY and _REGISTRY[key] is not cls:
        raise ValueError(f"Source kind {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = cls
    return cls


def get(kind: str) -> type[BaseSource]:
    """
    Look up a source class by kind (case-insensitive).
    Raises KeyError if not found.
    """
    key = (kind or "").strip().lower()
    if key not in _REGISTRY:
        raise KeyError(f"No source registered for kind {kind!r}.")
    return _REGISTRY[key]


def create(settings: Settings) -> BaseSource:
    """Instantiate the source selected by `settings.source`."""
    cls = get(settings.source.kind)
    return cls.from_settings(settings)


def all_kinds() -> dict[str, type[BaseSource]]:
    return dict(_REGISTRY)
