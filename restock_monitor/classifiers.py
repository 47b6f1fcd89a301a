"""Per-merchant availability classifiers.

Each classifier turns raw page markup into a `Classification`.  Rules work
on the markup text only (structured-data flags, visible phrases and
purchase button state); nothing is rendered.  Any parsing error resolves
to the classifier's fail-safe result instead of propagating.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, Iterable

from bs4 import BeautifulSoup

from .models import Classification, Site, Status

logger = logging.getLogger(__name__)


def _any(patterns: Iterable[re.Pattern], text: str) -> bool:
    return any(p.search(text) for p in patterns)


# Visible negative phrases, word bounded so OUT_OF_STOCK style enum values do not count.
SOLD_OUT_TEXT = re.compile(r"\b(?:sold\s+out|out\s+of\s+stock)\b", re.I)

_SCHEMA = r"(?:https?://schema\.org/)?"

IN_STOCK_FLAGS = (
    re.compile(r'"availability"\s*:\s*"' + _SCHEMA + r'InStock"', re.I),
    re.compile(r'"availabilityStatus"\s*:\s*"IN_STOCK"', re.I),
)
OOS_FLAGS = (
    re.compile(r'"availability"\s*:\s*"' + _SCHEMA + r'(?:OutOfStock|SoldOut|Discontinued)"', re.I),
    re.compile(r'"availabilityStatus"\s*:\s*"(?:OUT_OF_STOCK|SOLD_OUT|UNAVAILABLE|DISCONTINUED)"', re.I),
)
PREORDER_FLAGS = (
    re.compile(r'"availability"\s*:\s*"' + _SCHEMA + r'(?:PreOrder|PreSale)"', re.I),
    re.compile(r'"availabilityStatus"\s*:\s*"(?:PRE_ORDER|PREORDER|PRE_ORDER_SELLABLE)"', re.I),
)


class Classifier(ABC):
    """Strategy interface: one implementation per supported merchant."""

    site: Site
    rules_version: str = "1"

    @property
    def fail_safe(self) -> Classification:
        return Classification(Status.OOS)

    def classify(self, markup: str) -> Classification:
        try:
            return self._classify(markup or "")
        except Exception:
            logger.exception("[%s] classification failed; treating page as out of stock", self.site.value)
            return self.fail_safe

    @abstractmethod
    def _classify(self, markup: str) -> Classification:
        ...


class TargetClassifier(Classifier):
    """Target product pages.

    Precedence: visible sold-out text, then structured flags
    (out of stock, preorder, in stock), then enabled purchase buttons.
    Without positive evidence the page is out of stock.
    """

    site = Site.TARGET

    BUTTON_SELECTOR = "button, a.button, a[role=button], input[type=submit]"
    PURCHASE_TEXT = re.compile(r"\b(?:add to cart|ship it|pick up|buy now)\b", re.I)

    def _classify(self, markup: str) -> Classification:
        if SOLD_OUT_TEXT.search(markup):
            return Classification(Status.OOS)

        oos = _any(OOS_FLAGS, markup)
        in_stock = _any(IN_STOCK_FLAGS, markup)
        preorder = _any(PREORDER_FLAGS, markup)

        if oos and not in_stock:
            return Classification(Status.OOS)
        if preorder and not in_stock:
            return Classification(Status.PREORDER)
        if in_stock and not oos:
            return Classification(Status.IN_STOCK)

        if not oos and self._has_enabled_purchase_button(markup):
            return Classification(Status.IN_STOCK)
        return Classification(Status.OOS)

    def _has_enabled_purchase_button(self, markup: str) -> bool:
        soup = BeautifulSoup(markup, "html.parser")
        for el in soup.select(self.BUTTON_SELECTOR):
            if el.has_attr("disabled"):
                continue
            if (el.get("aria-disabled") or "").strip().lower() == "true":
                continue
            text = el.get_text(" ", strip=True) or el.get("value") or el.get("aria-label") or ""
            if self.PURCHASE_TEXT.search(text):
                return True
        return False


class WalmartClassifier(Classifier):
    """Walmart product pages; also reports whether Walmart itself is the seller."""

    site = Site.WALMART

    FIRST_PARTY_TEXT = re.compile(r"sold\s+and\s+shipped\s+by\s+walmart(?:\.com)?\b", re.I)
    FIRST_PARTY_FLAGS = (
        re.compile(r'"sellerName"\s*:\s*"Walmart(?:\.com)?"', re.I),
        re.compile(r'"sellerType"\s*:\s*"(?:INTERNAL|FIRST_PARTY|1P)"', re.I),
        re.compile(r'"isFirstParty"\s*:\s*true', re.I),
    )
    ADD_TO_CART_FLAGS = (
        re.compile(r'"addToCartButtonState"\s*:\s*"(?:ENABLED|ACTIVE)"', re.I),
        re.compile(r'"canAddToCart"\s*:\s*true', re.I),
    )

    @property
    def fail_safe(self) -> Classification:
        return Classification(Status.OOS, is_first_party=False)

    def _classify(self, markup: str) -> Classification:
        if SOLD_OUT_TEXT.search(markup) or _any(OOS_FLAGS, markup):
            return Classification(Status.OOS, is_first_party=False)

        first_party = bool(self.FIRST_PARTY_TEXT.search(markup)) or _any(self.FIRST_PARTY_FLAGS, markup)
        in_stock = _any(IN_STOCK_FLAGS, markup) or _any(self.ADD_TO_CART_FLAGS, markup)

        if in_stock and first_party:
            return Classification(Status.IN_STOCK, is_first_party=True)
        if in_stock:
            return Classification(Status.THIRD_PARTY, is_first_party=False)
        return Classification(Status.OOS, is_first_party=first_party)


CLASSIFIERS: Dict[Site, Classifier] = {
    Site.TARGET: TargetClassifier(),
    Site.WALMART: WalmartClassifier(),
}


def get_classifier(site: Site) -> Classifier:
    try:
        return CLASSIFIERS[Site(site)]
    except (KeyError, ValueError):
        raise ValueError(f"No classifier registered for site {site!r}") from None


__all__ = [
    "Classifier",
    "TargetClassifier",
    "WalmartClassifier",
    "CLASSIFIERS",
    "get_classifier",
    "SOLD_OUT_TEXT",
]
