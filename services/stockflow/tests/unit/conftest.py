"""Shared fixtures for stockflow unit tests.

FakeRedis covers just the commands the pipeline issues (string counters,
capped lists, key scans, MULTI pipelines) so list and restoration
properties can be asserted on real state instead of call records.
"""
from __future__ import annotations

import fnmatch
from unittest.mock import AsyncMock

import pytest

from app.metrics.catalog import build_registry


class FakePipeline:
    def __init__(self, redis: "FakeRedis", transaction: bool):
        self._redis = redis
        self.transaction = transaction
        self._ops: list[tuple[str, tuple]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc) -> None:
        self._ops.clear()

    def lpush(self, key, *values):
        self._ops.append(("lpush", (key, *values)))
        return self

    def ltrim(self, key, start, end):
        self._ops.append(("ltrim", (key, start, end)))
        return self

    async def execute(self):
        self._redis.pipelines_executed += 1
        results = []
        for name, args in self._ops:
            results.append(getattr(self._redis, f"_{name}")(*args))
        self._ops.clear()
        return results


class FakeRedis:
    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.lists: dict[str, list[str]] = {}
        self.pipelines_executed = 0

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self, transaction)

    # ── lists ──
    def _lpush(self, key, *values):
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    def _ltrim(self, key, start, end):
        items = self.lists.get(key, [])
        stop = len(items) if end == -1 else end + 1
        self.lists[key] = items[start:stop]
        return True

    async def lpush(self, key, *values):
        return self._lpush(key, *values)

    async def ltrim(self, key, start, end):
        return self._ltrim(key, start, end)

    async def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        stop = len(items) if end == -1 else end + 1
        return items[start:stop]

    # ── strings ──
    async def get(self, key):
        return self.strings.get(key)

    async def set(self, key, value):
        self.strings[key] = str(value)
        return True

    async def incrbyfloat(self, key, amount):
        value = float(self.strings.get(key, 0)) + float(amount)
        self.strings[key] = str(value)
        return value

    async def scan_iter(self, match: str | None = None):
        for key in list(self.strings):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def ping(self):
        return True


class FakeSessionFactory:
    """Stands in for an async_sessionmaker: ``async with factory() as s``."""

    def __init__(self, session=None):
        self.session = session if session is not None else AsyncMock()
        self.opened = 0

    def __call__(self) -> "FakeSessionFactory":
        self.opened += 1
        return self

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc):
        return False


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def registry():
    return build_registry()
