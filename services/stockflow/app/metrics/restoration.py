"""Counter restoration on startup.

Producers checkpoint cumulative counter totals in Redis (see
app.metrics.ledger). After a restart the in-memory registry starts at zero,
so this worker reads the checkpoints back and seeds each accumulator once.

Every applied Redis key goes into ``_seen`` before the next key is read.
A retried pass therefore skips keys that an earlier, partially failed
attempt already applied; a second full run in the same process is a no-op.
The set lives in memory only, so a crash in the middle of a pass can
double-seed keys across the restart.
"""
from __future__ import annotations

import asyncio
from typing import Sequence

import redis.asyncio as redis
import structlog

from app.core.errors import RestorationFailed
from app.core.observability import MetricKey, MetricsRegistry
from app.metrics.catalog import (
    GLOBAL_COUNTER_FAMILIES,
    LABELED_COUNTER_FAMILIES,
    CounterFamily,
)
from app.workers.base import BaseWorker

logger = structlog.get_logger(__name__)


def _to_number(raw: str | bytes | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


class CounterRestorer(BaseWorker):
    def __init__(
        self,
        redis_client: redis.Redis,
        registry: MetricsRegistry,
        labeled_families: Sequence[CounterFamily] = LABELED_COUNTER_FAMILIES,
        global_families: Sequence[CounterFamily] = GLOBAL_COUNTER_FAMILIES,
        warmup_seconds: float = 5.0,
        max_attempts: int = 3,
        retry_delay_seconds: float = 3.0,
    ):
        super().__init__("counter_restore")
        self._redis = redis_client
        self._registry = registry
        self._labeled = tuple(labeled_families)
        self._global = tuple(global_families)
        self.warmup_seconds = warmup_seconds
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._seen: set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def restored_keys(self) -> frozenset[str]:
        return frozenset(self._seen)

    async def run(self) -> None:
        await asyncio.sleep(self.warmup_seconds)
        for pass_name, sweep in (
            ("labeled", self.restore_labeled),
            ("global", self.restore_global),
        ):
            if not self._running:
                return
            try:
                await self.restore_with_retry(pass_name, sweep)
            except RestorationFailed as exc:
                logger.warning("counter_restore_skipped", pass_name=pass_name, reason=exc.message)

    async def restore_with_retry(self, pass_name: str, sweep) -> int:
        try:
            applied = await self.process_with_retry(
                sweep,
                max_retries=self.max_attempts,
                delay=self.retry_delay_seconds,
            )
        except Exception as exc:
            raise RestorationFailed(pass_name, self.max_attempts) from exc
        logger.info("counters_restored", pass_name=pass_name, applied=applied)
        return applied

    async def restore_labeled(self) -> int:
        """One sweep over every labeled family. Redis errors propagate."""
        applied = 0
        async with self._lock:
            for family in self._labeled:
                applied += await self._restore_family(family)
        return applied

    async def restore_global(self) -> int:
        """One sweep over the single-key global counters."""
        applied = 0
        async with self._lock:
            for family in self._global:
                if family.name in self._seen:
                    continue
                value = _to_number(await self._redis.get(family.name))
                if not value or value < 0:
                    continue
                self._registry.inc(family.name, None, value)
                self._seen.add(family.name)
                applied += 1
        return applied

    async def _restore_family(self, family: CounterFamily) -> int:
        applied = 0
        async for key in self._redis.scan_iter(match=f"{family.name}:*"):
            if key in self._seen:
                continue
            metric_key = MetricKey.parse(key, family.name, family.label_keys)
            if metric_key is None:
                logger.debug("counter_key_skipped", key=key, required=list(family.label_keys))
                continue
            raw = await self._redis.get(key)
            value = _to_number(raw)
            if value is None or value < 0:
                logger.warning("counter_value_invalid", key=key, raw=raw)
                continue
            self._registry.inc(family.name, metric_key.label_dict(), value)
            self._seen.add(key)
            applied += 1
        return applied
