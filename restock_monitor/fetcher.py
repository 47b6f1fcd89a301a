"""Single-attempt page fetcher.

The blocking `requests` call runs on the loop's default executor so
several products can be in flight at once while the rest of the
monitor stays on the event loop.  Every outcome, good or bad, is
reported to the schedule controller.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Dict, Optional

import requests

from .models import FetchOutcome
from .schedule import ScheduleController
from .utils import page_headers

logger = logging.getLogger(__name__)


class Fetcher:
    def __init__(
        self,
        session: requests.Session,
        schedule: Optional[ScheduleController] = None,
        *,
        user_agent: str = "Mozilla/5.0",
        timeout_ms: int = 8000,
    ):
        self.session = session
        self.schedule = schedule
        self.headers = page_headers(user_agent)
        self.timeout_ms = timeout_ms

    def _get(self, url: str, headers: Dict[str, str], timeout_s: float) -> FetchOutcome:
        try:
            resp = self.session.get(url, headers=headers, timeout=timeout_s, allow_redirects=True)
        except requests.Timeout:
            return FetchOutcome.failure(f"timeout after {timeout_s:.1f}s")
        except requests.RequestException as e:
            return FetchOutcome.failure(f"network error: {e}")

        if not 200 <= resp.status_code < 400:
            return FetchOutcome.failure(f"HTTP {resp.status_code}")
        return FetchOutcome.success(resp.text or "")

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> FetchOutcome:
        """Fetch ``url`` once. Never raises; failures come back as ``ok=False``."""
        timeout_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        timeout_s = timeout_ms / 1000
        call = functools.partial(self._get, url, {**self.headers, **(headers or {})}, timeout_s)

        loop = asyncio.get_running_loop()
        try:
            outcome = await asyncio.wait_for(loop.run_in_executor(None, call), timeout=timeout_s)
        except asyncio.TimeoutError:
            outcome = FetchOutcome.failure(f"timeout after {timeout_s:.1f}s")
        except Exception as e:
            logger.exception("Unexpected error fetching %s", url)
            outcome = FetchOutcome.failure(f"unexpected error: {e}")

        if outcome.ok:
            logger.debug("Fetched %s (%d chars)", url, len(outcome.markup or ""))
        else:
            logger.warning("Fetch failed for %s: %s", url, outcome.error_reason)

        if self.schedule is not None:
            self.schedule.record(outcome.ok)
        return outcome


__all__ = ["Fetcher"]
