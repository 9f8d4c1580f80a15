import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from structlog.testing import capture_logs

from app.metrics.catalog import (
    KAFKA_MESSAGES_PRODUCED_TOTAL,
    STOCKS_ADDED_TOTAL,
    build_registry,
)
from app.metrics.ledger import CounterLedger
from app.metrics.restoration import CounterRestorer
from tests.unit.conftest import FakeRedis

ALICE = {"admin_email": "alice@x", "store_id": "5"}


class TestCheckpointKey:
    def test_labeled_family_uses_family_labels_only(self, registry, fake_redis):
        ledger = CounterLedger(registry, fake_redis)
        key = ledger.checkpoint_key(STOCKS_ADDED_TOTAL, {**ALICE, "store_name": "North"})
        assert key == "stocks_added_total:admin_email=alice@x:store_id=5"

    def test_global_family_uses_bare_name(self, registry, fake_redis):
        ledger = CounterLedger(registry, fake_redis)
        assert ledger.checkpoint_key(KAFKA_MESSAGES_PRODUCED_TOTAL, ALICE) == KAFKA_MESSAGES_PRODUCED_TOTAL

    def test_missing_label_has_no_key(self, registry, fake_redis):
        ledger = CounterLedger(registry, fake_redis)
        assert ledger.checkpoint_key(STOCKS_ADDED_TOTAL, {"store_id": "5"}) is None

    def test_uncheckpointed_metric(self, registry, fake_redis):
        assert CounterLedger(registry, fake_redis).checkpoint_key("purchases_total", ALICE) is None


class TestRecord:
    @pytest.mark.asyncio
    async def test_record_updates_memory_and_checkpoint(self, registry, fake_redis):
        ledger = CounterLedger(registry, fake_redis)

        await ledger.record(STOCKS_ADDED_TOTAL, ALICE)
        await ledger.record(STOCKS_ADDED_TOTAL, ALICE, 2)

        assert registry.get(STOCKS_ADDED_TOTAL, ALICE) == 3.0
        assert float(fake_redis.strings["stocks_added_total:admin_email=alice@x:store_id=5"]) == 3.0

    @pytest.mark.asyncio
    async def test_missing_labels_stay_in_memory(self, registry, fake_redis):
        ledger = CounterLedger(registry, fake_redis)

        with capture_logs() as logs:
            await ledger.record(STOCKS_ADDED_TOTAL, {"store_id": "5"})

        assert registry.get(STOCKS_ADDED_TOTAL, {"store_id": "5"}) == 1.0
        assert fake_redis.strings == {}
        assert logs[0]["event"] == "counter_checkpoint_missing_labels"

    @pytest.mark.asyncio
    async def test_redis_failure_is_logged_not_raised(self, registry):
        class DownRedis(FakeRedis):
            async def incrbyfloat(self, key, amount):
                raise RedisConnectionError("down")

        ledger = CounterLedger(registry, DownRedis())

        with capture_logs() as logs:
            await ledger.record(KAFKA_MESSAGES_PRODUCED_TOTAL)

        assert registry.get(KAFKA_MESSAGES_PRODUCED_TOTAL) == 1.0
        assert logs[0]["event"] == "counter_checkpoint_failed"

    @pytest.mark.asyncio
    async def test_totals_survive_restart(self, fake_redis):
        before = build_registry()
        ledger = CounterLedger(before, fake_redis)
        for _ in range(4):
            await ledger.record(STOCKS_ADDED_TOTAL, ALICE)
        await ledger.record(KAFKA_MESSAGES_PRODUCED_TOTAL, ALICE)

        after = build_registry()
        restorer = CounterRestorer(fake_redis, after, warmup_seconds=0, retry_delay_seconds=0)
        await restorer.run()

        assert after.get(STOCKS_ADDED_TOTAL, ALICE) == 4.0
        assert after.get(KAFKA_MESSAGES_PRODUCED_TOTAL) == 1.0
