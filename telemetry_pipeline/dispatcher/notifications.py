"""Servicio de notificaciones salientes (webhook).

Best-effort: un fallo se loguea y se descarta; nunca bloquea la
persistencia ni la confirmación del evento.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from ..domain.models import EvaluationEvent

logger = logging.getLogger(__name__)


def build_payload(event: EvaluationEvent) -> Dict[str, Any]:
    reading = event.reading
    return {
        "alert_type": event.classification.value,
        "ship_id": reading.entity_id,
        "sensor_id": reading.sensor_id,
        "temperature": reading.value,
        "timestamp": reading.observed_at.isoformat(),
        "thresholds": event.thresholds.to_dict() if event.thresholds else None,
        "message": event.message,
    }


class WebhookNotifier:
    """POST JSON al webhook configurado."""

    def __init__(
        self,
        url: Optional[str],
        enabled: bool = True,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self._url = url
        self._enabled = enabled
        self._timeout = timeout
        self._http = session or requests.Session()

    @property
    def active(self) -> bool:
        return bool(self._enabled and self._url)

    def notify(self, event: EvaluationEvent) -> bool:
        """True si el webhook respondió 2xx."""
        if not self.active:
            logger.debug("[NOTIFY] Webhook disabled - skipping entity=%s", event.reading.entity_id)
            return False

        try:
            response = self._http.post(
                self._url,
                json=build_payload(event),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except Exception as e:
            logger.error("[NOTIFY] Webhook failed entity=%s err=%s", event.reading.entity_id, e)
            return False

        if not response.ok:
            logger.warning(
                "[NOTIFY] Webhook rejected entity=%s status=%s",
                event.reading.entity_id, response.status_code,
            )
            return False

        logger.info(
            "[NOTIFY] Sent %s entity=%s", event.classification.value, event.reading.entity_id
        )
        return True
