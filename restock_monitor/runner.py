"""Per-tick check of every configured product.

Each cycle starts one check per product, the i-th one ``i * stagger_ms``
after the tick.  Checks run concurrently; only the fetch suspends, while
classification and notification run to completion on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Set

from .classifiers import Classifier, get_classifier
from .fetcher import Fetcher
from .models import Product, Site, StockUpdateEvent
from .notifier import StockNotifier

logger = logging.getLogger(__name__)


class CycleRunner:
    def __init__(
        self,
        products: Sequence[Product],
        fetcher: Fetcher,
        notifier: StockNotifier,
        *,
        stagger_ms: int = 500,
        skip_in_flight: bool = True,
        classifier_for: Callable[[Site], Classifier] = get_classifier,
    ):
        self.products = list(products)
        self.fetcher = fetcher
        self.notifier = notifier
        self.stagger_ms = stagger_ms
        self.skip_in_flight = skip_in_flight
        self._classifier_for = classifier_for
        self._in_flight: Set[str] = set()
        self.cycles = 0

    @property
    def in_flight(self) -> Set[str]:
        return set(self._in_flight)

    async def run_cycle(self) -> List[Optional[StockUpdateEvent]]:
        """Run one scheduling tick and wait for all of its checks."""
        self.cycles += 1
        logger.debug("Cycle %d: checking %d products", self.cycles, len(self.products))
        tasks = []
        for idx, product in enumerate(self.products):
            if self.skip_in_flight and product.url in self._in_flight:
                logger.debug("[%s] %s: previous check still running, skipped", product.site.value, product.name)
                continue
            self._in_flight.add(product.url)
            delay = idx * self.stagger_ms / 1000
            tasks.append(asyncio.ensure_future(self.check_product(product, delay=delay)))
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def check_product(self, product: Product, *, delay: float = 0.0) -> Optional[StockUpdateEvent]:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            outcome = await self.fetcher.fetch(product.url)
            if not outcome.ok:
                return None
            result = self._classifier_for(product.site).classify(outcome.markup or "")
            return self.notifier.process(product, result)
        except Exception:
            logger.exception("[%s] check failed for %s", product.site.value, product.url)
            return None
        finally:
            self._in_flight.discard(product.url)


__all__ = ["CycleRunner"]
