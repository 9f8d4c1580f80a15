"""Per-topic handlers.

They only write a trace line; persistence is the dispatcher's job.
None of them raise on an unknown kind.
"""
from __future__ import annotations

import structlog

from app.events.models import Event, EventKind, Topic

logger = structlog.get_logger(__name__)


def handle_stock_event(event: Event) -> None:
    kind = event.kind
    if kind == EventKind.STOCK_ADDED:
        logger.info("stock_added", name=event.name, quantity=event.quantity, store_id=event.store_id)
    elif kind == EventKind.STOCK_UPDATED:
        logger.info(
            "stock_updated",
            stock_id=event.id,
            quantity=event.quantity,
            price=event.price,
            store_id=event.store_id,
        )
    elif kind == EventKind.STOCK_REMOVED:
        logger.info(
            "stock_removed",
            name=event.name,
            stock_id=event.stock_identifier(Topic.STOCK_EVENTS.value),
            store_id=event.store_id,
        )
    elif kind == EventKind.STOCK_PURCHASED:
        logger.info(
            "stock_purchased",
            name=event.name,
            stock_id=event.id,
            store_id=event.store_id,
            purchased_quantity=event.purchased_quantity,
            remaining=event.quantity,
        )
    elif kind == EventKind.REBALANCE:
        logger.info("stock_rebalanced", name=event.name, stock_id=event.id, quantity=event.quantity)
    else:
        logger.warning("unknown_event_type", topic=Topic.STOCK_EVENTS.value, event_type=kind)


def handle_stock_alert(event: Event) -> None:
    # older producers sent alerts without any kind field
    if event.kind not in (None, EventKind.LOW_STOCK):
        logger.warning("unknown_event_type", topic=Topic.STOCK_ALERTS.value, event_type=event.kind)
        return
    logger.warning(
        "low_stock_alert",
        name=event.name,
        stock_id=event.id,
        quantity=event.quantity,
        store_id=event.store_id,
    )


def handle_store_event(event: Event) -> None:
    kind = event.kind
    extra = event.model_extra or {}
    if kind == EventKind.STORE_ADDED:
        logger.info("store_added", name=event.name, category=extra.get("category"))
    elif kind == EventKind.STORE_UPDATED:
        logger.info(
            "store_updated",
            previous_name=extra.get("name1"),
            previous_category=extra.get("category1"),
            name=event.name,
            category=extra.get("category"),
        )
    elif kind == EventKind.STORE_REMOVED:
        logger.info("store_removed", store_id=event.id)
    else:
        logger.warning("unknown_event_type", topic=Topic.STORE_EVENTS.value, event_type=kind)
