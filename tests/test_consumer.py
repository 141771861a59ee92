"""Tests del bucle consumidor: aislamiento de fallos, backoff, DLQ y parada."""

import json
from unittest.mock import MagicMock

import pytest

from telemetry_pipeline.errors import MalformedItemError, TransportError
from telemetry_pipeline.queue import (
    ConsumerConfig,
    DeadLetterQueue,
    QueueConsumer,
    QueueItem,
)


def _fail_on(bad_body: str):
    def handler(item: QueueItem) -> None:
        if item.body == bad_body:
            raise MalformedItemError(f"cannot parse {item.body}")

    return handler


@pytest.fixture
def config():
    return ConsumerConfig(max_batch=10, wait_seconds=0, error_backoff_seconds=0, max_receive_count=3)


# =============================================================================
# PROCESAMIENTO DE BATCH
# =============================================================================

class TestBatchProcessing:
    def test_partial_failure_acks_only_successes(self, make_queue, config):
        queue = make_queue()
        for body in ("ok-1", "bad", "ok-2"):
            queue.publish(body)
        consumer = QueueConsumer("evaluator", queue, _fail_on("bad"), config=config)

        acked = consumer.run_once()

        assert acked == 2
        assert len(queue) == 1
        stats = consumer.get_stats()
        assert stats["items_processed"] == 2
        assert stats["items_failed"] == 1

    def test_failed_item_is_redelivered(self, make_queue, queue_clock, config):
        queue = make_queue(visibility_timeout=30)
        queue.publish("bad")
        seen = []

        def handler(item):
            seen.append(item.receive_count)
            raise RuntimeError("store down")

        consumer = QueueConsumer("dispatcher", queue, handler, config=config)
        consumer.run_once()
        queue_clock.advance(31)
        consumer.run_once()

        assert seen == [1, 2]

    def test_empty_poll_is_counted(self, make_queue, config):
        consumer = QueueConsumer("evaluator", make_queue(), MagicMock(), config=config)
        assert consumer.run_once() == 0
        assert consumer.get_stats()["empty_polls"] == 1

    def test_ack_failure_does_not_raise(self, config):
        queue = MagicMock()
        queue.name = "intake"
        queue.poll.return_value = [QueueItem("1-0", "1-0", "a")]
        queue.ack_batch.side_effect = TransportError("down")
        consumer = QueueConsumer("evaluator", queue, MagicMock(), config=config)

        assert consumer.run_once() == 0
        assert consumer.get_stats()["ack_errors"] == 1


# =============================================================================
# ERRORES DE TRANSPORTE
# =============================================================================

class TestPollErrors:
    def test_poll_error_backs_off_and_continues(self, config):
        queue = MagicMock()
        queue.name = "intake"
        queue.poll.side_effect = [TransportError("down"), []]
        consumer = QueueConsumer("evaluator", queue, MagicMock(), config=config)

        stats = consumer.run(max_iterations=2)

        assert stats.poll_errors == 1
        assert stats.polls == 1
        assert queue.poll.call_count == 2


# =============================================================================
# DEAD LETTER
# =============================================================================

class TestDeadLetter:
    def test_item_dead_lettered_after_cap(self, make_queue, queue_clock, config):
        source = make_queue("intake", visibility_timeout=30)
        dlq_target = make_queue("intake:dlq")
        source.publish("bad")
        consumer = QueueConsumer(
            "evaluator",
            source,
            _fail_on("bad"),
            config=config,
            dead_letter=DeadLetterQueue(dlq_target),
        )

        for _ in range(3):
            consumer.run_once()
            queue_clock.advance(31)

        assert len(source) == 0
        assert len(dlq_target) == 1
        entry = json.loads(dlq_target.poll(1, 0)[0].body)
        assert entry["payload"] == "bad"
        assert entry["error_type"] == "MalformedItemError"
        assert entry["receive_count"] == 3
        assert entry["source"] == "evaluator"
        assert consumer.get_stats()["items_dead_lettered"] == 1
        assert consumer.get_stats()["dead_letter"] == {"target": "intake:dlq", "total_sent": 1}

    def test_zero_cap_disables_dead_letter(self, make_queue, queue_clock):
        source = make_queue("intake", visibility_timeout=30)
        dlq_target = make_queue("intake:dlq")
        source.publish("bad")
        consumer = QueueConsumer(
            "evaluator",
            source,
            _fail_on("bad"),
            config=ConsumerConfig(wait_seconds=0, max_receive_count=0),
            dead_letter=DeadLetterQueue(dlq_target),
        )

        for _ in range(6):
            consumer.run_once()
            queue_clock.advance(31)

        assert len(source) == 1
        assert len(dlq_target) == 0

    def test_dlq_publish_failure_keeps_item(self, make_queue, queue_clock, config):
        source = make_queue("intake", visibility_timeout=30)
        source.publish("bad")
        target = MagicMock()
        target.name = "intake:dlq"
        target.publish.side_effect = TransportError("down")
        consumer = QueueConsumer(
            "evaluator", source, _fail_on("bad"), config=config, dead_letter=DeadLetterQueue(target)
        )

        for _ in range(3):
            consumer.run_once()
            queue_clock.advance(31)

        assert len(source) == 1


# =============================================================================
# CICLO DE VIDA
# =============================================================================

class TestLifecycle:
    def test_max_iterations(self, make_queue, config):
        consumer = QueueConsumer("evaluator", make_queue(), MagicMock(), config=config)
        stats = consumer.run(max_iterations=3)
        assert stats.iterations == 3

    def test_stop_before_run(self, make_queue, config):
        consumer = QueueConsumer("evaluator", make_queue(), MagicMock(), config=config)
        consumer.stop()
        assert consumer.run().iterations == 0
        assert consumer.stopped

    def test_stop_finishes_current_batch(self, make_queue, config):
        """stop() durante el batch: el batch se completa y confirma."""
        queue = make_queue()
        queue.publish("a")
        queue.publish("b")
        processed = []

        def handler(item):
            processed.append(item.body)
            consumer.stop()

        consumer = QueueConsumer("evaluator", queue, handler, config=config)
        stats = consumer.run()

        assert processed == ["a", "b"]
        assert stats.iterations == 1
        assert len(queue) == 0
