"""CLI entry point: telemetry-pipeline <command>.

Commands:
- evaluator / dispatcher: bucles consumidores (--once / --max-iterations)
- gateway: servidor HTTP de ingesta
- init-db: crea el esquema (y siembra entity_configs con --seed)
- init-queues: crea streams y consumer groups
- seed-thresholds: carga umbrales del seed en Redis
- simulate: envía lecturas simuladas al gateway
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Union

from .common.config import Settings, get_settings
from .common.db import check_connection, create_stage_engine
from .common.redis_client import RedisConnection
from .queue import QueueConsumer

if TYPE_CHECKING:
    from .simulator import TelemetrySimulator

logger = logging.getLogger(__name__)


def _load_seed(path: str) -> Dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _install_signal_handlers(consumer: Union[QueueConsumer, "TelemetrySimulator"]) -> None:
    def _shutdown(signum, _frame):
        logger.info("Signal %s received, finishing in-flight batch...", signum)
        consumer.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)


def _run_consumer(args: argparse.Namespace, settings: Settings) -> int:
    from .runtime import build_dispatcher_consumer, build_evaluator_consumer

    connection = RedisConnection(
        settings.redis_url,
        socket_timeout=max(settings.evaluator_poll_wait, settings.dispatcher_poll_wait) + 10,
    )
    if not connection.ping():
        logger.error("Redis unreachable, %s not started", args.command)
        return 1
    builder = build_evaluator_consumer if args.command == "evaluator" else build_dispatcher_consumer
    consumer = builder(settings, connection.client)
    _install_signal_handlers(consumer)

    max_iterations: Optional[int] = 1 if args.once else args.max_iterations
    try:
        consumer.run(max_iterations=max_iterations)
    finally:
        logger.info("Final stats: %s", consumer.get_stats())
        connection.disconnect()
    return 0


def _run_gateway(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from .gateway import create_app
    from .runtime import build_queue

    connection = RedisConnection(settings.redis_url)
    intake = build_queue(connection.client, settings, settings.intake_queue)
    app = create_app(intake)
    uvicorn.run(app, host=args.host or settings.gateway_host, port=args.port or settings.gateway_port)
    return 0


def _init_db(args: argparse.Namespace, settings: Settings) -> int:
    from .storage import ensure_schema, seed_entity_configs

    engine = create_stage_engine(settings, pool_size=1)
    if not check_connection(engine):
        return 1
    ensure_schema(engine)
    if args.seed:
        inserted = seed_entity_configs(engine, _load_seed(args.seed))
        logger.info("Entity configurations inserted: %d", inserted)
    return 0


def _init_queues(_args: argparse.Namespace, settings: Settings) -> int:
    from .runtime import build_queue

    connection = RedisConnection(settings.redis_url)
    for stream in (settings.intake_queue, settings.outcome_queue):
        build_queue(connection.client, settings, stream)
        build_queue(connection.client, settings, f"{stream}:dlq")
        logger.info("Queue ready: %s (dlq %s:dlq)", stream, stream)
    return 0


def _seed_thresholds(args: argparse.Namespace, settings: Settings) -> int:
    from .evaluator import seed_thresholds

    connection = RedisConnection(settings.redis_url)
    count = seed_thresholds(connection.client, _load_seed(args.seed))
    logger.info("Thresholds configured for %d entities", count)
    return 0


def _simulate(args: argparse.Namespace, settings: Settings) -> int:
    import random

    from .simulator import TelemetrySimulator

    url = args.gateway_url or settings.simulator_gateway_url
    interval = args.interval if args.interval is not None else settings.simulator_interval
    simulator = TelemetrySimulator(url, rng=random.Random(args.seed))
    if not simulator.check_gateway():
        return 1
    _install_signal_handlers(simulator)
    simulator.run(interval=interval, max_rounds=args.rounds)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="telemetry-pipeline",
        description="Fleet telemetry evaluation pipeline",
    )
    sub = p.add_subparsers(dest="command", required=True)

    for name in ("evaluator", "dispatcher"):
        sp = sub.add_parser(name, help=f"run the {name} consumer loop")
        sp.add_argument("--once", action="store_true", help="run a single iteration and exit")
        sp.add_argument("--max-iterations", type=int, default=None)

    gw = sub.add_parser("gateway", help="run the HTTP ingestion gateway")
    gw.add_argument("--host", default=None)
    gw.add_argument("--port", type=int, default=None)

    db = sub.add_parser("init-db", help="create tables and indexes")
    db.add_argument("--seed", default=None, help="seed JSON with per-entity thresholds")

    sub.add_parser("init-queues", help="create streams and consumer groups")

    th = sub.add_parser("seed-thresholds", help="load thresholds into Redis")
    th.add_argument("seed", help="seed JSON with defaults and per-entity thresholds")

    sim = sub.add_parser("simulate", help="send simulated fleet readings to the gateway")
    sim.add_argument("--gateway-url", default=None)
    sim.add_argument("--interval", type=float, default=None, help="seconds between rounds")
    sim.add_argument("--seed", type=int, default=None, help="RNG seed for reproducible runs")
    sim.add_argument("--rounds", type=int, default=None, help="stop after N rounds")
    return p


_COMMANDS = {
    "evaluator": _run_consumer,
    "dispatcher": _run_consumer,
    "gateway": _run_gateway,
    "init-db": _init_db,
    "init-queues": _init_queues,
    "seed-thresholds": _seed_thresholds,
    "simulate": _simulate,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logger.info("Starting %s", args.command)
    return _COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
