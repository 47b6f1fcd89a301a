"""Configuration loader.

Reads environment variables and `.env` to configure the service.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv

from .models import Product, Site

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


# ---- Polling schedule --------------------------------------------------------

# Starting and fastest polling period (baseFast).
FAST_INTERVAL_MS: int = _parse_int(_get_env("FAST_INTERVAL_MS"), 3000)

# Slowest polling period under sustained failure (baseSlow).
SLOW_INTERVAL_MS: int = _parse_int(_get_env("SLOW_INTERVAL_MS"), 10000)

STEP_UP_MS: int = _parse_int(_get_env("STEP_UP_MS"), 2000)
STEP_DOWN_MS: int = _parse_int(_get_env("STEP_DOWN_MS"), 1000)

# Consecutive failed fetches before the interval is widened.
FAILURE_THRESHOLD: int = _parse_int(_get_env("FAILURE_THRESHOLD"), 3)

# Delay added per product index within one cycle.
STAGGER_MS: int = _parse_int(_get_env("STAGGER_MS"), 500)

# ---- Fetching ----------------------------------------------------------------

FETCH_TIMEOUT_MS: int = _parse_int(_get_env("FETCH_TIMEOUT_MS"), 8000)
USER_AGENT: str = _get_env("USER_AGENT", "Mozilla/5.0") or "Mozilla/5.0"

# Skip a product in a new cycle while its previous check is still running.
SKIP_IN_FLIGHT: bool = _parse_bool(_get_env("SKIP_IN_FLIGHT"), True)

# ---- Notification policy -----------------------------------------------------

# Report third-party-only listings as out of stock.
REQUIRE_FIRST_PARTY: bool = _parse_bool(_get_env("REQUIRE_FIRST_PARTY"), False)

# Optional Discord webhook that receives every stock_update event.
DISCORD_WEBHOOK_URL: Optional[str] = _get_env("DISCORD_WEBHOOK_URL")

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO") or "INFO"

# ---- Products ----------------------------------------------------------------

DEFAULT_PRODUCTS: List[dict] = [
    {
        "site": "target",
        "name": "2025 Panini NFL Score Blaster Box",
        "url": "https://www.target.com/p/2025-panini-nfl-score-football-trading-card-blaster-box/-/A-94681674",
    },
]


def parse_products(data: Any) -> List[Product]:
    """Build the product list from decoded JSON (a list of site/name/url objects)."""
    if not isinstance(data, list):
        raise ValueError("Product list must be a JSON array")

    products: List[Product] = []
    seen_urls: set[str] = set()
    for idx, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"Product #{idx} must be an object")
        missing = [k for k in ("site", "name", "url") if not entry.get(k)]
        if missing:
            raise ValueError(f"Product #{idx} is missing {', '.join(missing)}")
        try:
            site = Site(str(entry["site"]).strip().lower())
        except ValueError:
            valid = [s.value for s in Site]
            raise ValueError(f"Product #{idx} has unknown site {entry['site']!r}. Valid sites: {valid}") from None
        url = str(entry["url"]).strip()
        if url in seen_urls:
            raise ValueError(f"Duplicate product url: {url}")
        seen_urls.add(url)
        products.append(Product(site=site, name=str(entry["name"]).strip(), url=url))
    return products


def load_products(
    products_file: Optional[str] = None,
    products_json: Optional[str] = None,
) -> List[Product]:
    """Load products from a JSON file, inline JSON, or the built-in default."""
    if products_file:
        with open(products_file, "r", encoding="utf-8") as f:
            return parse_products(json.load(f))
    if products_json:
        return parse_products(json.loads(products_json))
    return parse_products(DEFAULT_PRODUCTS)


PRODUCTS_FILE: Optional[str] = _get_env("PRODUCTS_FILE")
PRODUCTS_JSON: Optional[str] = _get_env("PRODUCTS_JSON")

PRODUCTS: List[Product] = load_products(PRODUCTS_FILE, PRODUCTS_JSON)

# ---- Validation --------------------------------------------------------------

def validate() -> None:
    """Validate required configuration parameters."""
    if FAST_INTERVAL_MS <= 0 or SLOW_INTERVAL_MS <= 0:
        raise RuntimeError("FAST_INTERVAL_MS and SLOW_INTERVAL_MS must be positive.")
    if FAST_INTERVAL_MS > SLOW_INTERVAL_MS:
        raise RuntimeError(
            f"FAST_INTERVAL_MS ({FAST_INTERVAL_MS}) must not exceed SLOW_INTERVAL_MS ({SLOW_INTERVAL_MS})."
        )
    if STEP_UP_MS < 0 or STEP_DOWN_MS < 0 or STAGGER_MS < 0:
        raise RuntimeError("STEP_UP_MS, STEP_DOWN_MS and STAGGER_MS must not be negative.")
    if FAILURE_THRESHOLD < 1:
        raise RuntimeError("FAILURE_THRESHOLD must be at least 1.")
    if not PRODUCTS:
        raise RuntimeError("No products configured. Set PRODUCTS_FILE or PRODUCTS_JSON.")


__all__ = [
    # Schedule
    "FAST_INTERVAL_MS",
    "SLOW_INTERVAL_MS",
    "STEP_UP_MS",
    "STEP_DOWN_MS",
    "FAILURE_THRESHOLD",
    "STAGGER_MS",
    # Fetching
    "FETCH_TIMEOUT_MS",
    "USER_AGENT",
    "SKIP_IN_FLIGHT",
    # Notifications
    "REQUIRE_FIRST_PARTY",
    "DISCORD_WEBHOOK_URL",
    "LOG_LEVEL",
    # Products
    "PRODUCTS",
    "PRODUCTS_FILE",
    "PRODUCTS_JSON",
    "DEFAULT_PRODUCTS",
    # Helpers
    "parse_products",
    "load_products",
    "validate",
]
