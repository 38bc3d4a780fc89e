from __future__ import annotations

import math
import random
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeVar

T = TypeVar("T")


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class DelayPolicy:
    """
    Randomized pause used to stay under the site's rate limits.
    A (0, 0) policy disables sleeping entirely (handy for tests).
    """

    min_seconds: float = 0.0
    max_seconds: float = 0.0

    @property
    def enabled(self) -> bool:
        return self.max_seconds > 0

    def draw(self) -> float:
        if not self.enabled:
            return 0.0
        return random.uniform(self.min_seconds, self.max_seconds)

    def pause(self, sleep: Callable[[float], None] = time.sleep) -> float:
        seconds = self.draw()
        if seconds > 0:
            sleep(seconds)
        return seconds

    @classmethod
    def parse(cls, value: Any, default: DelayPolicy) -> DelayPolicy:
        """
        Accept a DelayPolicy, a [min, max] pair, a single number (fixed delay),
        or "min-max" / "min,max" strings from the environment.
        """
        if value is None or value == "":
            return default
        if isinstance(value, DelayPolicy):
            return value
        if isinstance(value, (int, float)):
            return cls(float(value), float(value))
        if isinstance(value, str):
            parts = [p for p in value.replace(",", "-").split("-") if p.strip()]
            value = [float(p) for p in parts]
        if isinstance(value, (list, tuple)):
            if len(value) == 1:
                return cls(float(value[0]), float(value[0]))
            if len(value) == 2:
                return cls(float(value[0]), float(value[1]))
        raise ValueError(f"Cannot interpret delay range {value!r}")


def page_count(total_items: int, page_size: int) -> int:
    if page_size <= 0:
        return 1
    return math.ceil(total_items / page_size)


def paginate(items: Sequence[T], page: int, page_size: int) -> list[T]:
    """Return the 1-based `page` slice of `items`."""
    start = max(page - 1, 0) * page_size
    end = min(start + page_size, len(items))
    return list(items[start:end])
