"""Lineage history — audit records of value transitions and their rollups."""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from lineage_engine.models.field import MultiSourceField
from lineage_engine.models.source import DataSource


class LineageHistoryRecord(BaseModel):
    """
    Immutable audit entry for one value transition of (weapon, field).

    old_value is None on the first-ever observation. Records are
    content-addressed by (weapon_id, field, timestamp, source).
    """

    model_config = ConfigDict(frozen=True)

    weapon_id: str
    field: str
    old_value: Any = None
    new_value: Any
    source: DataSource
    confidence: float = Field(ge=0.0, le=1.0)
    reason: Optional[str] = None
    reference: Optional[str] = None
    timestamp: int = Field(ge=0)

    @property
    def key(self) -> Tuple[str, str, int, str]:
        return (self.weapon_id, self.field, self.timestamp, self.source.value)


class LineageMetadata(BaseModel):
    """Per-entity rollup, recomputable from its reconciled fields."""

    total_sources: int = 0
    average_confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    conflict_count: int = 0
    stale_data_count: int = 0               # Source records older than the stale threshold
    last_updated: Optional[int] = None
    last_validated: int
    contributing_sources: List[DataSource] = []
    validation_errors: List[str] = []


class DataLineage(BaseModel):
    """Every reconciled field of one entity plus its metadata."""

    weapon_id: str
    fields: Dict[str, MultiSourceField]
    metadata: LineageMetadata
    created_at: int
    updated_at: int


class FieldHistoryEntry(BaseModel):
    value: Any
    source: DataSource
    timestamp: int
    confidence: float
    reason: Optional[str] = None


class FieldHistory(BaseModel):
    """Time-ordered history of one (weapon, field) pair, newest first."""

    weapon_id: str
    field: str
    history: List[FieldHistoryEntry] = []
    current_value: Any = None
    change_count: int = 0


class LineageQueryFilters(BaseModel):
    """Filters for history queries. Time bounds are inclusive."""

    weapon_id: Optional[str] = None
    field: Optional[str] = None
    source: Optional[DataSource] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    min_confidence: Optional[float] = Field(ge=0.0, le=1.0, default=None)
    conflicts_only: bool = False
    limit: Optional[int] = Field(ge=1, default=None)


class LineageStatistics(BaseModel):
    """Aggregate view over a set of history records."""

    total_records: int = 0
    total_fields: int = 0
    total_entities: int = 0
    average_confidence: float = 0.0
    conflict_count: int = 0                 # (weapon, field) pairs with >1 distinct value
    stale_count: int = 0
    completeness: float = Field(ge=0.0, le=100.0, default=0.0)
    source_breakdown: Dict[DataSource, int] = {}
    reason_breakdown: Dict[str, int] = {}
    last_updated: Optional[int] = None
