"""In-memory record of the last emitted status per product URL."""

from __future__ import annotations

from typing import Dict

from .models import Status


class StatusStore:
    def __init__(self) -> None:
        self._statuses: Dict[str, Status] = {}

    def get(self, url: str) -> Status:
        return self._statuses.get(url, Status.UNKNOWN)

    def set(self, url: str, status: Status) -> None:
        if status is Status.UNKNOWN:
            raise ValueError("UNKNOWN is only the initial status and cannot be stored")
        self._statuses[url] = status

    def snapshot(self) -> Dict[str, Status]:
        return dict(self._statuses)

    def __len__(self) -> int:
        return len(self._statuses)


__all__ = ["StatusStore"]
