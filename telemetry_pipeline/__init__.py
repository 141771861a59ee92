"""Pipeline de evaluación de telemetría de flota.

Etapas (todas comunicadas por colas):
- gateway: recibe lecturas HTTP y las encola en la cola de ingesta
- evaluator: umbrales + clasificación + tendencia -> cola de resultados
- dispatcher: ejecuta las acciones de cada evento contra los stores
"""

__version__ = "0.1.0"
