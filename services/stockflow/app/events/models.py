"""Broker event wire format.

Only the kind is meaningful to the pipeline; every other field is optional
and kind-dependent, so nothing here rejects a payload for its field types.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.core.errors import MalformedEventError


class Topic(str, Enum):
    STOCK_EVENTS = "stock-events"
    STOCK_ALERTS = "stock-alerts"
    STORE_EVENTS = "store-events"


class EventKind(str, Enum):
    STOCK_ADDED = "stock-added"
    STOCK_UPDATED = "stock-updated"
    STOCK_REMOVED = "stock-removed"
    STOCK_PURCHASED = "stock-purchased"
    REBALANCE = "rebalance"
    LOW_STOCK = "LOW_STOCK"
    STORE_ADDED = "store-added"
    STORE_UPDATED = "store-updated"
    STORE_REMOVED = "store-removed"


MAX_LOGGED_RAW = 512


def _present(value: Any) -> bool:
    return value is not None and value != ""


class Event(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    event: Any = None
    alert_type: Any = Field(default=None, alias="type")
    store_id: Any = None
    storeId: Any = None
    id: Any = None
    stock_id: Any = None
    admin_email: Any = None
    name: Any = None
    quantity: Any = None
    price: Any = None
    purchased_quantity: Any = None
    timestamp: Any = None

    @property
    def kind(self) -> str | None:
        """``event`` field, falling back to ``type`` (LOW_STOCK alerts use ``type``)."""
        for candidate in (self.event, self.alert_type):
            if _present(candidate):
                return str(candidate)
        return None

    def explicit_store_id(self) -> str | None:
        return str(self.store_id) if _present(self.store_id) else None

    def store_identifier(self) -> str | None:
        """Store the event belongs to: ``store_id``, then ``storeId``, then ``id``."""
        for candidate in (self.store_id, self.storeId, self.id):
            if _present(candidate):
                return str(candidate)
        return None

    def stock_identifier(self, topic: str) -> str | None:
        if _present(self.stock_id):
            return str(self.stock_id)
        # on store-events ``id`` is the store, not a stock row
        if topic != Topic.STORE_EVENTS.value and _present(self.id):
            return str(self.id)
        return None

    def admin_identifier(self) -> str | None:
        return str(self.admin_email) if _present(self.admin_email) else None


def decode_event(raw: bytes | str | None) -> tuple[Event, dict[str, Any]]:
    """Parse one message value into (Event, original payload dict)."""
    if raw is None:
        raise MalformedEventError("empty message value")
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        payload = json.loads(text)
    # JSONDecodeError and UnicodeDecodeError are ValueErrors; deep nesting hits the recursion limit
    except (ValueError, RecursionError) as e:
        raise MalformedEventError(str(e) or type(e).__name__, raw=repr(raw[:MAX_LOGGED_RAW])) from e
    if not isinstance(payload, dict):
        raise MalformedEventError(f"expected a JSON object, got {type(payload).__name__}", raw=text)
    return Event.model_validate(payload), payload
