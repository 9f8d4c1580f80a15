import json

import pytest

from app.storage.activity_cache import RecentActivityCache


class TestRecentActivityCache:
    @pytest.mark.asyncio
    async def test_list_is_capped_most_recent_first(self, fake_redis):
        cache = RecentActivityCache(fake_redis, limit=100)

        for i in range(150):
            await cache.push("5", {"seq": i})

        stored = fake_redis.lists["activity:5"]
        assert len(stored) == 100
        assert json.loads(stored[0]) == {"seq": 149}
        assert json.loads(stored[-1]) == {"seq": 50}

    @pytest.mark.asyncio
    async def test_push_and_trim_share_one_transaction(self, fake_redis):
        cache = RecentActivityCache(fake_redis, limit=3)

        await cache.push("5", {"seq": 1})

        assert fake_redis.pipelines_executed == 1

    @pytest.mark.asyncio
    async def test_stores_are_isolated(self, fake_redis):
        cache = RecentActivityCache(fake_redis, limit=2)
        await cache.push("1", {"store": 1})
        await cache.push("2", {"store": 2})

        assert await cache.recent("1") == [{"store": 1}]
        assert await cache.recent("2") == [{"store": 2}]

    @pytest.mark.asyncio
    async def test_recent_marks_unreadable_entries(self, fake_redis):
        cache = RecentActivityCache(fake_redis)
        fake_redis.lists["activity:5"] = ['{"ok": true}', "not-json"]

        entries = await cache.recent("5")

        assert entries == [{"ok": True}, {"error": "Invalid JSON", "raw": "not-json"}]

    @pytest.mark.asyncio
    async def test_recent_honours_count(self, fake_redis):
        cache = RecentActivityCache(fake_redis)
        for i in range(10):
            await cache.push("5", {"seq": i})

        entries = await cache.recent("5", count=3)

        assert [e["seq"] for e in entries] == [9, 8, 7]

    def test_custom_prefix(self, fake_redis):
        assert RecentActivityCache(fake_redis, key_prefix="kafka_logs").key_for("7") == "kafka_logs:7"

    def test_limit_must_be_positive(self, fake_redis):
        with pytest.raises(ValueError):
            RecentActivityCache(fake_redis, limit=0)
