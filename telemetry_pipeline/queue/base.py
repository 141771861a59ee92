from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol, Sequence


@dataclass(frozen=True)
class QueueItem:
    """Elemento recibido de una cola.

    `receipt` es el token opaco para confirmar el elemento; solo es válido
    hasta que vence su plazo de visibilidad.
    """

    message_id: str
    receipt: str
    body: str
    receive_count: int = 1


class MessageQueue(Protocol):
    """Interfaz de cola con entrega at-least-once.

    Las etapas solo dependen de esta interfaz, no de la implementación concreta.
    """

    name: str

    def publish(self, body: str) -> str:
        """Añade un mensaje y devuelve su id."""

        ...

    def poll(self, max_batch: int, wait: float) -> List[QueueItem]:
        """Bloquea hasta `wait` segundos; devuelve 0..max_batch elementos.

        Una cola vacía no es un error: devuelve lista vacía.
        """

        ...

    def ack_batch(self, receipts: Sequence[str]) -> int:
        """Confirma (elimina) los elementos dados en una sola llamada."""

        ...
