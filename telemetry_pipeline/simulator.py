"""Simulador de lecturas de la flota contra el gateway HTTP.

Cada ronda genera una temperatura por barco y la envía desde cada uno de
sus sensores (con ruido de ±0.5). Probabilidades por barco y ronda:
- 5%  anomalía crítica: base + variance + [5, 10)
- 10% anomalía warning: base + variance + [1, 5)
- 85% normal: base ± variance

Uso:
    sim = TelemetrySimulator("http://localhost:8080", rng=random.Random(7))
    if sim.check_gateway():
        sim.run(interval=10)
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence

import requests

from .domain.models import utc_now

logger = logging.getLogger(__name__)

# Cortes acumulados sobre una única tirada por barco y ronda.
CRITICAL_CUTOFF = 0.05
WARNING_CUTOFF = 0.15
SENSOR_NOISE = 0.5


@dataclass(frozen=True)
class ShipProfile:
    ship_id: str
    name: str
    base_temp: float
    variance: float
    sensors: int

    def sensor_ids(self) -> list:
        return [f"{self.ship_id}_sensor_{i + 1}" for i in range(self.sensors)]


DEFAULT_FLEET = (
    ShipProfile("ship_1", "Salmon Carrier", base_temp=-18.0, variance=8.0, sensors=2),
    ShipProfile("ship_2", "Tuna Carrier", base_temp=-15.0, variance=7.0, sensors=3),
    ShipProfile("ship_3", "Lobster Carrier", base_temp=-20.0, variance=6.0, sensors=1),
)


def ship_temperature(ship: ShipProfile, rng: random.Random) -> float:
    """Temperatura real de la bodega en esta ronda."""
    roll = rng.random()
    if roll < CRITICAL_CUTOFF:
        return ship.base_temp + ship.variance + 5 + rng.random() * 5
    if roll < WARNING_CUTOFF:
        return ship.base_temp + ship.variance + 1 + rng.random() * 4
    return ship.base_temp + (rng.random() * 2 - 1) * ship.variance


def sensor_temperature(ship_temp: float, rng: random.Random) -> float:
    return ship_temp + (rng.random() - SENSOR_NOISE)


def build_reading(ship: ShipProfile, sensor_id: str, temp: float, now: datetime) -> Dict[str, Any]:
    return {
        "ship_id": ship.ship_id,
        "sensor_id": sensor_id,
        "temp": round(temp, 2),
        "timestamp": now.isoformat(),
    }


class TelemetrySimulator:
    """Envía lecturas simuladas al gateway cada `interval` segundos."""

    def __init__(
        self,
        gateway_url: str,
        fleet: Sequence[ShipProfile] = DEFAULT_FLEET,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
        timeout: float = 5.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._url = gateway_url.rstrip("/")
        self._fleet = tuple(fleet)
        self._http = session or requests.Session()
        self._rng = rng or random.Random()
        self._timeout = timeout
        self._clock = clock
        self._stop = threading.Event()
        self.sent = 0
        self.failed = 0

    def stop(self) -> None:
        self._stop.set()

    def check_gateway(self) -> bool:
        try:
            response = self._http.get(f"{self._url}/health", timeout=self._timeout)
        except requests.RequestException as e:
            logger.error("[SIMULATOR] Cannot connect to gateway at %s: %s", self._url, e)
            return False
        if not response.ok:
            logger.error("[SIMULATOR] Gateway unhealthy status=%s", response.status_code)
            return False
        logger.info("[SIMULATOR] Gateway is healthy: %s", self._url)
        return True

    def send_round(self) -> int:
        """Una lectura por sensor de cada barco. Devuelve las aceptadas."""
        accepted = 0
        for ship in self._fleet:
            ship_temp = ship_temperature(ship, self._rng)
            for sensor_id in ship.sensor_ids():
                reading = build_reading(
                    ship, sensor_id, sensor_temperature(ship_temp, self._rng), self._clock()
                )
                if self._send(reading):
                    accepted += 1
        return accepted

    def run(self, interval: float = 10.0, max_rounds: Optional[int] = None) -> int:
        """Rondas cada `interval` segundos hasta stop() o `max_rounds`."""
        sensors = sum(ship.sensors for ship in self._fleet)
        logger.info(
            "[SIMULATOR] Sending to %s every %.1fs ships=%d sensors=%d",
            self._url, interval, len(self._fleet), sensors,
        )
        rounds = 0
        while not self._stop.is_set():
            if max_rounds is not None and rounds >= max_rounds:
                break
            self.send_round()
            rounds += 1
            if max_rounds is None or rounds < max_rounds:
                self._stop.wait(interval)
        logger.info("[SIMULATOR] Stopped rounds=%d sent=%d failed=%d", rounds, self.sent, self.failed)
        return rounds

    def _send(self, reading: Dict[str, Any]) -> bool:
        summary = " | ".join(str(v) for v in reading.values())
        try:
            response = self._http.post(
                f"{self._url}/telemetry", json=reading, timeout=self._timeout
            )
        except requests.RequestException as e:
            self.failed += 1
            logger.error("[SIMULATOR] Error sending %s: %s", summary, e)
            return False
        if not response.ok:
            self.failed += 1
            logger.error("[SIMULATOR] status=%s rejected %s", response.status_code, summary)
            return False
        self.sent += 1
        logger.info("%d | %s", self.sent, summary)
        return True
