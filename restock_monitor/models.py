"""Data model shared across the monitor.

Products are fixed for the life of the process; statuses and events are
plain values passed between the fetcher, classifiers and notifier.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Site(str, Enum):
    TARGET = "target"
    WALMART = "walmart"


class Status(str, Enum):
    # UNKNOWN is only the initial value for a product that has never been classified.
    UNKNOWN = "unknown"
    IN_STOCK = "in_stock"
    OOS = "oos"
    PREORDER = "preorder"
    THIRD_PARTY = "third_party"


@dataclass(frozen=True)
class Product:
    site: Site
    name: str
    url: str  # identity key


@dataclass(frozen=True)
class Classification:
    """Result of classifying one page.

    ``is_first_party`` is only set by classifiers that can tell who the
    seller is (Walmart); it stays ``None`` elsewhere.
    """

    status: Status
    is_first_party: Optional[bool] = None


@dataclass(frozen=True)
class FetchOutcome:
    ok: bool
    markup: Optional[str] = None
    error_reason: Optional[str] = None

    @classmethod
    def success(cls, markup: str) -> "FetchOutcome":
        return cls(ok=True, markup=markup)

    @classmethod
    def failure(cls, reason: str) -> "FetchOutcome":
        return cls(ok=False, error_reason=reason)


@dataclass
class ScheduleState:
    current_interval_ms: int
    consecutive_failures: int
    base_fast: int
    base_slow: int
    step_up: int
    step_down: int


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StockUpdateEvent:
    site: Site
    name: str
    url: str
    status: Status
    ts: int = field(default_factory=_now_ms)
    extra: Optional[Dict[str, Any]] = None

    type: str = "stock_update"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "site": self.site.value,
            "name": self.name,
            "url": self.url,
            "status": self.status.value,
            "ts": self.ts,
        }
        if self.extra:
            payload["extra"] = dict(self.extra)
        return payload


__all__ = [
    "Site",
    "Status",
    "Product",
    "Classification",
    "FetchOutcome",
    "ScheduleState",
    "StockUpdateEvent",
]
