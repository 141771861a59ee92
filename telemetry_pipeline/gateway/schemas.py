from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class TelemetryIn(BaseModel):
    # Sin tipos estrictos: la validación devuelve 400 con mensaje propio, no 422.
    ship_id: Optional[Any] = None
    entity_id: Optional[Any] = None
    sensor_id: Optional[Any] = None
    temp: Optional[Any] = None
    value: Optional[Any] = None
    timestamp: Optional[Any] = None

    @property
    def resolved_entity_id(self) -> Any:
        return self.entity_id if self.entity_id not in (None, "") else self.ship_id

    @property
    def raw_value(self) -> Any:
        return self.value if self.value is not None else self.temp


class QueuedResult(BaseModel):
    message: str
    message_id: str


class HealthResult(BaseModel):
    status: str
    service: str
