"""Lineage engine data models."""

from lineage_engine.models.confidence import ConfidenceScore
from lineage_engine.models.config import (
    DEFAULT_CONFIDENCE_CONFIG,
    ConfidenceConfig,
    StoreConfig,
    load_confidence_config,
)
from lineage_engine.models.field import ConflictDetail, ConflictValue, MultiSourceField
from lineage_engine.models.lineage import (
    DataLineage,
    FieldHistory,
    FieldHistoryEntry,
    LineageHistoryRecord,
    LineageMetadata,
    LineageQueryFilters,
    LineageStatistics,
)
from lineage_engine.models.source import SOURCE_RELIABILITY, DataSource, SourceRecord

__all__ = [
    "ConfidenceConfig",
    "ConfidenceScore",
    "ConflictDetail",
    "ConflictValue",
    "DataLineage",
    "DataSource",
    "DEFAULT_CONFIDENCE_CONFIG",
    "FieldHistory",
    "FieldHistoryEntry",
    "LineageHistoryRecord",
    "LineageMetadata",
    "LineageQueryFilters",
    "LineageStatistics",
    "MultiSourceField",
    "SOURCE_RELIABILITY",
    "SourceRecord",
    "StoreConfig",
    "load_confidence_config",
]
