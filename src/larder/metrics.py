"""Prometheus metrics definitions for Larder."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "larder_http_requests_total",
    "Total number of HTTP requests processed by the Larder API",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "larder_http_request_duration_seconds",
    "Latency of HTTP requests processed by the Larder API",
    ["method", "path"],
)

RECIPE_ITEMS = Counter(
    "larder_recipe_items_total",
    "Recipe ingredients processed during list conversion, by result",
    ["result"],
)

PURCHASES_RECORDED = Counter(
    "larder_purchases_recorded_total",
    "Number of purchases recorded from checked list items",
)

PURCHASE_RECONCILIATIONS = Counter(
    "larder_purchase_reconciliations_total",
    "Number of purchase ledger edits applied",
)

__all__ = [
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "RECIPE_ITEMS",
    "PURCHASES_RECORDED",
    "PURCHASE_RECONCILIATIONS",
]
