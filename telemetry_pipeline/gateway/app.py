"""Gateway HTTP: valida lecturas y las encola en la cola de ingesta.

Es el único punto con respuesta síncrona; más allá de la cola todo el
pipeline es asíncrono.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request

from ..domain.models import Reading, parse_number, parse_timestamp
from ..errors import MalformedItemError
from ..queue.base import MessageQueue
from .schemas import HealthResult, QueuedResult, TelemetryIn

logger = logging.getLogger(__name__)


def _get_queue(request: Request) -> MessageQueue:
    return request.app.state.intake_queue


def _as_text(raw: Any) -> str:
    if raw is None or isinstance(raw, bool):
        return ""
    return str(raw).strip()


def _coerce_timestamp(raw: Any) -> datetime:
    """ISO-8601 o epoch en segundos."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        try:
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedItemError(f"invalid timestamp: {raw!r}") from e
    return parse_timestamp(_as_text(raw))


def create_app(intake_queue: MessageQueue) -> FastAPI:
    app = FastAPI(title="Telemetry Gateway", version="0.1.0")
    app.state.intake_queue = intake_queue

    @app.get("/health", response_model=HealthResult)
    def health() -> HealthResult:
        return HealthResult(status="healthy", service="gateway")

    @app.post("/telemetry", response_model=QueuedResult)
    def ingest_telemetry(payload: TelemetryIn, request: Request) -> QueuedResult:
        entity_id = _as_text(payload.resolved_entity_id)
        if not entity_id or _as_text(payload.timestamp) == "":
            raise HTTPException(
                status_code=400,
                detail="Missing required field(s): ship_id, timestamp",
            )

        try:
            value = parse_number(payload.raw_value, "value")
        except MalformedItemError:
            raise HTTPException(status_code=400, detail="Invalid temperature reading")

        try:
            observed_at = _coerce_timestamp(payload.timestamp)
        except MalformedItemError:
            raise HTTPException(status_code=400, detail="Invalid timestamp")

        reading = Reading(
            entity_id=entity_id,
            sensor_id=_as_text(payload.sensor_id) or f"{entity_id}_default_sensor",
            value=value,
            observed_at=observed_at,
        )

        try:
            message_id = _get_queue(request).publish(reading.to_json())
        except Exception as e:
            logger.error("[GATEWAY] Sending telemetry to queue failed: %s", e)
            raise HTTPException(
                status_code=500,
                detail=f"Sending telemetry to queue failed: {e}",
            )

        summary = " | ".join(str(v) for v in reading.to_dict().values())
        logger.info("[GATEWAY] Queued: %s", summary)
        return QueuedResult(message=f"Queued: {summary}", message_id=message_id)

    return app
