import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiokafka.errors import KafkaTimeoutError

from app.core.errors import PublishError
from app.events import rebalance
from app.events.publisher import EventPublisher
from app.events.rebalance import rebalance_low_stock
from app.metrics.catalog import KAFKA_MESSAGES_PRODUCED_TOTAL
from app.metrics.ledger import CounterLedger
from tests.unit.conftest import FakeSessionFactory


@pytest.fixture
def producer():
    producer = MagicMock()
    producer.send_and_wait = AsyncMock()
    return producer


@pytest.fixture
def ledger(registry, fake_redis):
    return CounterLedger(registry, fake_redis)


class TestEventPublisher:
    @pytest.mark.asyncio
    async def test_publish_sends_json_and_counts(self, producer, ledger, registry, fake_redis):
        publisher = EventPublisher(producer, ledger)

        body = await publisher.publish(
            "stock-events",
            {"event": "stock-added", "store_id": 5, "admin_email": "a@x.com"},
            key="stock-added",
        )

        topic = producer.send_and_wait.await_args.args[0]
        kwargs = producer.send_and_wait.await_args.kwargs
        assert topic == "stock-events"
        assert kwargs["key"] == b"stock-added"
        assert json.loads(kwargs["value"]) == body
        assert "timestamp" in body
        assert registry.get(KAFKA_MESSAGES_PRODUCED_TOTAL, {"admin_email": "a@x.com", "store_id": 5}) == 1.0
        assert float(fake_redis.strings[KAFKA_MESSAGES_PRODUCED_TOTAL]) == 1.0

    @pytest.mark.asyncio
    async def test_existing_timestamp_is_kept(self, producer, ledger):
        body = await EventPublisher(producer, ledger).publish("stock-alerts", {"type": "LOW_STOCK", "timestamp": "t0"})
        assert body["timestamp"] == "t0"
        assert producer.send_and_wait.await_args.kwargs["key"] is None

    @pytest.mark.asyncio
    async def test_failed_send_raises_and_is_not_counted(self, producer, ledger, registry):
        producer.send_and_wait.side_effect = KafkaTimeoutError()

        with pytest.raises(PublishError) as exc_info:
            await EventPublisher(producer, ledger).publish("stock-events", {"event": "stock-added"})

        assert exc_info.value.topic == "stock-events"
        assert registry.samples(KAFKA_MESSAGES_PRODUCED_TOTAL) == {}


class TestRebalance:
    @pytest.mark.asyncio
    async def test_refills_low_rows_and_announces_each(self, producer, ledger):
        result = MagicMock()
        result.fetchall.return_value = [SimpleNamespace(id=1, name="Milk"), SimpleNamespace(id=4, name="Eggs")]
        session = AsyncMock()
        session.execute.return_value = result

        count = await rebalance_low_stock(session, EventPublisher(producer, ledger), threshold=10, quantity=20)

        assert count == 2
        assert session.execute.await_args.args[1] == {"quantity": 20, "threshold": 10}
        session.commit.assert_awaited_once()
        sent = [json.loads(c.kwargs["value"]) for c in producer.send_and_wait.await_args_list]
        assert [(e["event"], e["id"], e["quantity"]) for e in sent] == [("rebalance", 1, 20), ("rebalance", 4, 20)]
        assert all(c.kwargs["key"] == b"rebalance" for c in producer.send_and_wait.await_args_list)

    @pytest.mark.asyncio
    async def test_nothing_below_threshold(self, producer, ledger):
        result = MagicMock()
        result.fetchall.return_value = []
        session = AsyncMock()
        session.execute.return_value = result

        assert await rebalance_low_stock(session, EventPublisher(producer, ledger)) == 0
        producer.send_and_wait.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_rebalance_uses_settings_and_closes_everything(self, monkeypatch, fake_redis):
        publisher = MagicMock()
        publisher.start = AsyncMock()
        publisher.stop = AsyncMock()
        inner = AsyncMock(return_value=3)
        close_redis = AsyncMock()
        dispose_database = AsyncMock()
        monkeypatch.setattr(rebalance, "get_redis", lambda: fake_redis)
        monkeypatch.setattr(rebalance.EventPublisher, "from_settings", MagicMock(return_value=publisher))
        monkeypatch.setattr(rebalance, "AsyncSessionLocal", FakeSessionFactory())
        monkeypatch.setattr(rebalance, "rebalance_low_stock", inner)
        monkeypatch.setattr(rebalance, "close_redis", close_redis)
        monkeypatch.setattr(rebalance, "dispose_database", dispose_database)

        assert await rebalance.run_rebalance() == 3

        assert inner.await_args.kwargs == {
            "threshold": rebalance.settings.LOW_STOCK_THRESHOLD,
            "quantity": rebalance.settings.REBALANCE_QUANTITY,
        }
        publisher.start.assert_awaited_once()
        publisher.stop.assert_awaited_once()
        close_redis.assert_awaited_once()
        dispose_database.assert_awaited_once()
