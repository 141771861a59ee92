"""Construcción de las etapas a partir de Settings.

Cada proceso arma solo lo que necesita: el evaluator usa Redis (umbrales
+ colas) y un pool pequeño de lectura; el dispatcher usa la cola de
resultados y un pool mayor de escritura.
"""

from __future__ import annotations

import logging
from typing import Any

from .common.config import Settings
from .common.db import get_dispatcher_engine, get_evaluator_engine
from .dispatcher import Dispatcher, WebhookNotifier
from .evaluator import (
    Evaluator,
    ThresholdResolver,
    TrendConfig,
    TrendDetector,
    load_default_thresholds,
)
from .queue import ConsumerConfig, DeadLetterQueue, QueueConsumer, RedisStreamQueue
from .storage import HistoryReader

logger = logging.getLogger(__name__)


def build_queue(client: Any, settings: Settings, stream: str) -> RedisStreamQueue:
    queue = RedisStreamQueue(
        client,
        stream,
        group=settings.consumer_group,
        visibility_timeout=settings.visibility_timeout,
        retention_seconds=settings.retention_seconds,
    )
    queue.ensure_group()
    return queue


def build_dead_letter(client: Any, settings: Settings, stream: str) -> DeadLetterQueue:
    return DeadLetterQueue(build_queue(client, settings, f"{stream}:dlq"))


def trend_config(settings: Settings) -> TrendConfig:
    return TrendConfig(
        window_minutes=settings.trend_window_minutes,
        max_samples=settings.trend_max_samples,
        min_samples=settings.trend_min_samples,
        min_rising_steps=settings.trend_min_rising_steps,
        min_total_increase=settings.trend_min_total_increase,
    )


def build_evaluator_consumer(settings: Settings, client: Any) -> QueueConsumer:
    intake = build_queue(client, settings, settings.intake_queue)
    outcome = build_queue(client, settings, settings.outcome_queue)

    defaults = load_default_thresholds(client, settings.default_thresholds)
    evaluator = Evaluator(
        thresholds=ThresholdResolver(client, defaults),
        trend=TrendDetector(HistoryReader(get_evaluator_engine(settings)), trend_config(settings)),
        outcome_queue=outcome,
    )
    return QueueConsumer(
        "evaluator",
        intake,
        evaluator.handle,
        config=ConsumerConfig(
            max_batch=settings.evaluator_max_batch,
            wait_seconds=settings.evaluator_poll_wait,
            error_backoff_seconds=settings.poll_error_backoff,
            max_receive_count=settings.max_receive_count,
        ),
        dead_letter=build_dead_letter(client, settings, settings.intake_queue),
    )


def build_dispatcher_consumer(settings: Settings, client: Any) -> QueueConsumer:
    outcome = build_queue(client, settings, settings.outcome_queue)
    notifier = WebhookNotifier(settings.webhook_url, enabled=settings.webhook_enabled)
    if not notifier.active:
        logger.info("[NOTIFY] Webhook notifications disabled")

    dispatcher = Dispatcher(get_dispatcher_engine(settings), notifier)
    return QueueConsumer(
        "dispatcher",
        outcome,
        dispatcher.handle,
        config=ConsumerConfig(
            max_batch=settings.dispatcher_max_batch,
            wait_seconds=settings.dispatcher_poll_wait,
            error_backoff_seconds=settings.poll_error_backoff,
            max_receive_count=settings.max_receive_count,
        ),
        dead_letter=build_dead_letter(client, settings, settings.outcome_queue),
    )
