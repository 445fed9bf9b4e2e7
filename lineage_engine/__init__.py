"""
Lineage engine — multi-source reconciliation with confidence scoring and
an append-only change history.
"""

from lineage_engine.backends import HistoryBackend, InMemoryHistoryBackend, SQLiteHistoryBackend
from lineage_engine.confidence import ConfidenceScorer
from lineage_engine.equality import values_equal
from lineage_engine.errors import (
    ConfigValidationError,
    EmptySourceSetError,
    InvalidFieldStateError,
    LineageError,
    PersistenceError,
    PreconditionError,
    UnknownSourceError,
    ValueEncodingError,
)
from lineage_engine.query import LineageQueryService
from lineage_engine.reconciler import FieldReconciler
from lineage_engine.registry import DEFAULT_SOURCE_REGISTRY, SourceRegistry
from lineage_engine.tracker import LineageTracker, lineage_tracker

__all__ = [
    "ConfidenceScorer",
    "ConfigValidationError",
    "DEFAULT_SOURCE_REGISTRY",
    "EmptySourceSetError",
    "FieldReconciler",
    "HistoryBackend",
    "InMemoryHistoryBackend",
    "InvalidFieldStateError",
    "LineageError",
    "LineageQueryService",
    "LineageTracker",
    "PersistenceError",
    "PreconditionError",
    "SQLiteHistoryBackend",
    "SourceRegistry",
    "UnknownSourceError",
    "ValueEncodingError",
    "lineage_tracker",
    "values_equal",
]
