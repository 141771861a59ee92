"""Resolución de umbrales por entidad desde la cache (Redis).

Formato de claves:
- threshold:{entity_id}:{warning|critical|target}
- threshold:default:{warning|critical|target}

Cada componente que falta se sustituye de forma independiente por el
default inyectado (fallback parcial, no todo-o-nada).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from ..domain.models import Thresholds

logger = logging.getLogger(__name__)

COMPONENTS = ("warning", "critical", "target")
DEFAULT_SCOPE = "default"


def threshold_key(scope: str, component: str) -> str:
    return f"threshold:{scope}:{component}"


def _parse(raw: Any, fallback: float, key: str) -> float:
    if raw is None or raw == "":
        return fallback
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.warning("[THRESHOLDS] Invalid value key=%s raw=%r, using default", key, raw)
        return fallback


def _read_scope(client: Any, scope: str, fallback: Thresholds) -> Thresholds:
    keys = [threshold_key(scope, c) for c in COMPONENTS]
    raw_values = client.mget(keys)
    values: Dict[str, float] = {
        component: _parse(raw, getattr(fallback, component), key)
        for component, key, raw in zip(COMPONENTS, keys, raw_values)
    }
    return Thresholds(**values)


class ThresholdResolver:
    """Cache-aside: un fallo de cache cae al default, nunca a la BD."""

    def __init__(self, client: Any, defaults: Thresholds):
        self._client = client
        self._defaults = defaults

    def resolve(self, entity_id: str) -> Thresholds:
        """Umbrales de la entidad. Errores de Redis se propagan (reentrega)."""
        thresholds = _read_scope(self._client, entity_id, self._defaults)
        logger.debug(
            "[THRESHOLDS] entity=%s warning=%s critical=%s target=%s",
            entity_id, thresholds.warning, thresholds.critical, thresholds.target,
        )
        return thresholds


def load_default_thresholds(client: Any, fallback: Thresholds) -> Thresholds:
    """Lee threshold:default:* al arrancar; lo que falte viene de la config."""
    defaults = _read_scope(client, DEFAULT_SCOPE, fallback)
    logger.info(
        "[THRESHOLDS] Defaults warning=%s critical=%s target=%s",
        defaults.warning, defaults.critical, defaults.target,
    )
    return defaults


def seed_thresholds(client: Any, seed: Dict[str, Any]) -> int:
    """Escribe en Redis los umbrales del seed. Devuelve entidades configuradas.

    Formato: {"defaults": {...}, "ships": [{"ship_id": ..., "thresholds": {...}}]}
    """
    pipe = client.pipeline()
    ships: Iterable[Dict[str, Any]] = seed.get("ships", [])
    count = 0
    for ship in ships:
        entity_id = str(ship["ship_id"])
        _set_scope(pipe, entity_id, ship.get("thresholds", {}))
        count += 1

    defaults: Optional[Dict[str, Any]] = seed.get("defaults")
    if defaults:
        _set_scope(pipe, DEFAULT_SCOPE, defaults)
    pipe.execute()

    logger.info("[THRESHOLDS] Seeded %d entities (defaults=%s)", count, bool(defaults))
    return count


def _set_scope(pipe: Any, scope: str, values: Dict[str, Any]) -> None:
    for component in COMPONENTS:
        if values.get(component) is not None:
            pipe.set(threshold_key(scope, component), str(values[component]))
