from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from ..domain.models import Thresholds


def _default_env_file() -> str:
    repo_root = Path(__file__).resolve().parents[2]
    return str(repo_root / ".env")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    redis_url: str
    database_url: str

    intake_queue: str
    outcome_queue: str
    consumer_group: str
    visibility_timeout: float
    retention_seconds: int
    max_receive_count: int

    evaluator_poll_wait: float
    evaluator_max_batch: int
    dispatcher_poll_wait: float
    dispatcher_max_batch: int
    poll_error_backoff: float

    trend_window_minutes: int
    trend_max_samples: int
    trend_min_samples: int
    trend_min_rising_steps: int
    trend_min_total_increase: float

    default_warning: float
    default_critical: float
    default_target: float

    webhook_enabled: bool
    webhook_url: str

    evaluator_db_pool_size: int
    dispatcher_db_pool_size: int
    db_pool_recycle: int

    gateway_host: str
    gateway_port: int

    simulator_gateway_url: str
    simulator_interval: float

    @property
    def default_thresholds(self) -> Thresholds:
        return Thresholds(
            warning=self.default_warning,
            critical=self.default_critical,
            target=self.default_target,
        )


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("TELEMETRY_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        database_url=os.getenv("DATABASE_URL", "postgresql+psycopg2://localhost/telemetry"),
        intake_queue=os.getenv("INTAKE_QUEUE", "telemetry:intake"),
        outcome_queue=os.getenv("OUTCOME_QUEUE", "telemetry:outcome"),
        consumer_group=os.getenv("QUEUE_CONSUMER_GROUP", "pipeline"),
        visibility_timeout=float(os.getenv("QUEUE_VISIBILITY_TIMEOUT", "30")),
        retention_seconds=int(os.getenv("QUEUE_RETENTION_SECONDS", "86400")),
        max_receive_count=int(os.getenv("QUEUE_MAX_RECEIVE_COUNT", "5")),
        evaluator_poll_wait=float(os.getenv("EVALUATOR_POLL_WAIT", "20")),
        evaluator_max_batch=int(os.getenv("EVALUATOR_MAX_BATCH", "10")),
        dispatcher_poll_wait=float(os.getenv("DISPATCHER_POLL_WAIT", "20")),
        dispatcher_max_batch=int(os.getenv("DISPATCHER_MAX_BATCH", "10")),
        poll_error_backoff=float(os.getenv("POLL_ERROR_BACKOFF", "5")),
        trend_window_minutes=int(os.getenv("TREND_WINDOW_MINUTES", "5")),
        trend_max_samples=int(os.getenv("TREND_MAX_SAMPLES", "5")),
        trend_min_samples=int(os.getenv("TREND_MIN_SAMPLES", "3")),
        trend_min_rising_steps=int(os.getenv("TREND_MIN_RISING_STEPS", "2")),
        trend_min_total_increase=float(os.getenv("TREND_MIN_TOTAL_INCREASE", "2")),
        # Fallback when neither the entity nor threshold:default:* exist in Redis.
        default_warning=float(os.getenv("DEFAULT_WARNING_THRESHOLD", "-10")),
        default_critical=float(os.getenv("DEFAULT_CRITICAL_THRESHOLD", "-5")),
        default_target=float(os.getenv("DEFAULT_TARGET_THRESHOLD", "-18")),
        webhook_enabled=_env_bool("WEBHOOK_ENABLED"),
        webhook_url=os.getenv("WEBHOOK_URL", ""),
        evaluator_db_pool_size=int(os.getenv("EVALUATOR_DB_POOL_SIZE", "3")),
        dispatcher_db_pool_size=int(os.getenv("DISPATCHER_DB_POOL_SIZE", "5")),
        db_pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "30")),
        gateway_host=os.getenv("GATEWAY_HOST", "0.0.0.0"),
        gateway_port=int(os.getenv("GATEWAY_PORT", "8080")),
        simulator_gateway_url=os.getenv("SIMULATOR_GATEWAY_URL", "http://localhost:8080"),
        simulator_interval=float(os.getenv("SIMULATOR_INTERVAL", "10")),
    )
