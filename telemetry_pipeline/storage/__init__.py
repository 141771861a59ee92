from .repository import HistoryReader, HistoryRow
from .schema import ensure_schema, seed_entity_configs

__all__ = ["HistoryReader", "HistoryRow", "ensure_schema", "seed_entity_configs"]
