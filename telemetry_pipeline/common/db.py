from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .config import Settings


logger = logging.getLogger(__name__)


def _safe_url(url: str) -> str:
    # No exponer credenciales en logs
    return url.split("@")[-1]


def create_stage_engine(settings: Settings, pool_size: int) -> Engine:
    """Engine con pool acotado para una etapa del pipeline.

    Cada proceso reserva su propio pool: lecturas de tendencia (evaluator)
    con pool pequeño, escrituras (dispatcher) con uno mayor.
    """
    logger.info(
        "[DB] Crear engine url=%s pool_size=%d recycle=%ds",
        _safe_url(settings.database_url),
        pool_size,
        settings.db_pool_recycle,
    )
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=0,
        pool_recycle=settings.db_pool_recycle,
        future=True,
    )


def get_evaluator_engine(settings: Settings) -> Engine:
    return create_stage_engine(settings, settings.evaluator_db_pool_size)


def get_dispatcher_engine(settings: Settings) -> Engine:
    return create_stage_engine(settings, settings.dispatcher_db_pool_size)


def check_connection(engine: Engine) -> bool:
    """Test de conexión: ayuda a ver en logs si el proceso realmente llega a la BD."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
        return True
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")
        return False
