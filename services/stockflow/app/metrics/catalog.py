"""Metric names, help texts and checkpointed counter families."""
from __future__ import annotations

from dataclasses import dataclass

from app.core.observability import MetricDefinition, MetricKind, MetricsRegistry

C = MetricKind.COUNTER
G = MetricKind.GAUGE

STOCKS_ADDED_TOTAL = "stocks_added_total"
STOCKS_UPDATED_TOTAL = "stocks_updated_total"
STOCKS_REMOVED_TOTAL = "stocks_removed_total"
LOW_STOCK_ALERTS_TOTAL = "low_stock_alerts_total"
REDIS_CACHE_HITS_TOTAL = "redis_cache_hits_total"
REDIS_CACHE_MISSES_TOTAL = "redis_cache_misses_total"
KAFKA_MESSAGES_PRODUCED_TOTAL = "kafka_messages_produced_total"
STORES_ADDED_TOTAL = "stores_added_total"
STORES_UPDATED_TOTAL = "stores_updated_total"
STORES_REMOVED_TOTAL = "stores_removed_total"
STORE_STOCK_QUANTITY = "store_stock_quantity"
STOCK_DB_QUERY_DURATION_SECONDS = "stock_db_query_duration_seconds"

_ADMIN_STORE = ("admin_email", "store_id")
_STORE = ("store_id", "store_name")
_PRODUCT = ("store_id", "store_name", "product_name", "product_id")

METRIC_DEFINITIONS: tuple[MetricDefinition, ...] = (
    # ── stock / store operations ──
    MetricDefinition(STOCKS_ADDED_TOTAL, "Total number of stocks added", C, _ADMIN_STORE),
    MetricDefinition(STOCKS_UPDATED_TOTAL, "Total number of stocks updated", C, _ADMIN_STORE),
    MetricDefinition(STOCKS_REMOVED_TOTAL, "Total number of stocks removed", C, _ADMIN_STORE),
    MetricDefinition(LOW_STOCK_ALERTS_TOTAL, "Number of times low stock threshold was crossed", C, _ADMIN_STORE),
    MetricDefinition(REDIS_CACHE_HITS_TOTAL, "Total number of Redis cache hits", C, _ADMIN_STORE),
    MetricDefinition(REDIS_CACHE_MISSES_TOTAL, "Total number of Redis cache misses", C, _ADMIN_STORE),
    MetricDefinition(KAFKA_MESSAGES_PRODUCED_TOTAL, "Total number of messages produced to Kafka", C, _ADMIN_STORE),
    MetricDefinition(STORES_ADDED_TOTAL, "Total number of stores added", C, ("admin_email",)),
    MetricDefinition(STORES_UPDATED_TOTAL, "Total number of stores updated", C, ("admin_email",)),
    MetricDefinition(STORES_REMOVED_TOTAL, "Total number of stores removed", C, ("admin_email",)),
    MetricDefinition(STORE_STOCK_QUANTITY, "Total stock quantity per store", G, _STORE),
    MetricDefinition(STOCK_DB_QUERY_DURATION_SECONDS, "Duration of the last stock refresh queries in seconds", G),
    # ── sales ──
    MetricDefinition("purchases_total", "Total number of purchases made", C, _PRODUCT),
    MetricDefinition("revenue_total", "Total revenue generated", C, _PRODUCT),
    MetricDefinition("daily_sales", "Daily sales count", G, ("store_id", "store_name", "date")),
    MetricDefinition("daily_revenue", "Daily revenue amount", G, ("store_id", "store_name", "date")),
    # ── stock levels ──
    MetricDefinition("stock_level", "Current stock level for each product", G, _PRODUCT),
    MetricDefinition("low_stock_products", "Number of products with low stock (below threshold)", G, _STORE),
    MetricDefinition("out_of_stock_products", "Number of products out of stock", G, _STORE),
    # ── store / product performance ──
    MetricDefinition("store_performance_score", "Store performance score based on sales and stock management", G, _STORE),
    MetricDefinition("store_total_revenue", "Total revenue per store", G, _STORE),
    MetricDefinition("store_total_sales", "Total sales count per store", G, _STORE),
    MetricDefinition("product_sales_count", "Total sales count per product", G, _PRODUCT),
    MetricDefinition("product_revenue", "Total revenue per product", G, _PRODUCT),
    MetricDefinition("product_stock_turnover", "Stock turnover rate per product (sales/stock ratio)", G, _PRODUCT),
    # ── carts ──
    MetricDefinition("cart_abandonments_total", "Total number of cart abandonments", C, _STORE),
    MetricDefinition("successful_purchases_total", "Total number of successful purchases", C, _STORE),
    # ── ratings / reviews ──
    MetricDefinition("ratings_submitted_total", "Total number of ratings submitted", C, ("store_id", "customer_id")),
    MetricDefinition("review_votes_total", "Total number of review votes (helpful/not helpful)", C, ("rating_id", "customer_id")),
    MetricDefinition("review_reports_total", "Total number of review reports", C, ("rating_id", "customer_id")),
    MetricDefinition("store_average_rating", "Average rating per store", G, _STORE),
    MetricDefinition("store_total_ratings", "Total number of ratings per store", G, _STORE),
)


@dataclass(frozen=True)
class CounterFamily:
    """A counter whose cumulative value is checkpointed in the durable store.

    ``label_keys`` empty means a single global key named after the metric.
    """
    name: str
    label_keys: tuple[str, ...] = ()


LABELED_COUNTER_FAMILIES: tuple[CounterFamily, ...] = (
    CounterFamily(STOCKS_ADDED_TOTAL, _ADMIN_STORE),
    CounterFamily(STOCKS_UPDATED_TOTAL, _ADMIN_STORE),
    CounterFamily(STOCKS_REMOVED_TOTAL, _ADMIN_STORE),
    CounterFamily(LOW_STOCK_ALERTS_TOTAL, _ADMIN_STORE),
    CounterFamily(REDIS_CACHE_MISSES_TOTAL, _ADMIN_STORE),
    CounterFamily(REDIS_CACHE_HITS_TOTAL, _ADMIN_STORE),
)

GLOBAL_COUNTER_FAMILIES: tuple[CounterFamily, ...] = (
    CounterFamily(KAFKA_MESSAGES_PRODUCED_TOTAL),
    CounterFamily(STORES_ADDED_TOTAL),
    CounterFamily(STORES_UPDATED_TOTAL),
    CounterFamily(STORES_REMOVED_TOTAL),
)


def build_registry() -> MetricsRegistry:
    return MetricsRegistry(METRIC_DEFINITIONS)
