from __future__ import annotations

from typing import Any, Mapping, Sequence

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from app.core.observability import MetricKey, MetricsRegistry
from app.metrics.catalog import (
    GLOBAL_COUNTER_FAMILIES,
    LABELED_COUNTER_FAMILIES,
    CounterFamily,
)

logger = structlog.get_logger(__name__)


class CounterLedger:
    """Increments a counter in memory and in its durable Redis checkpoint.

    Labeled families checkpoint under ``name:k=v:...`` restricted to the
    family's label keys; global families under the bare metric name.
    Counters outside both families are in-memory only.
    """

    def __init__(
        self,
        registry: MetricsRegistry,
        redis_client: redis.Redis,
        labeled_families: Sequence[CounterFamily] = LABELED_COUNTER_FAMILIES,
        global_families: Sequence[CounterFamily] = GLOBAL_COUNTER_FAMILIES,
    ):
        self._registry = registry
        self._redis = redis_client
        self._families = {f.name: f for f in (*labeled_families, *global_families)}

    def checkpoint_key(self, name: str, labels: Mapping[str, Any] | None = None) -> str | None:
        family = self._families.get(name)
        if family is None:
            return None
        if not family.label_keys:
            return family.name
        labels = labels or {}
        missing = [k for k in family.label_keys if labels.get(k) is None]
        if missing:
            return None
        return MetricKey.of(name, {k: labels[k] for k in family.label_keys}).storage_key()

    async def record(self, name: str, labels: Mapping[str, Any] | None = None, amount: float = 1) -> None:
        self._registry.inc(name, labels, amount)
        key = self.checkpoint_key(name, labels)
        if key is None:
            if name in self._families:
                logger.warning("counter_checkpoint_missing_labels", metric=name, labels=dict(labels or {}))
            return
        try:
            await self._redis.incrbyfloat(key, amount)
        except RedisError as e:
            # in-memory value stays ahead until the next successful checkpoint
            logger.warning("counter_checkpoint_failed", metric=name, key=key, error=str(e))
