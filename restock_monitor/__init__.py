"""
Product availability monitoring package.

This package contains modules for fetching retailer product pages,
classifying their purchasability per merchant, adapting the polling
interval to fetch health and emitting stock change events.  See
DESIGN.md for details.
"""

__all__ = [
    "classifiers",
    "config",
    "fetcher",
    "main",
    "models",
    "notifier",
    "runner",
    "schedule",
    "store",
    "utils",
]
